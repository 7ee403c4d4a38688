"""
Отчет о прогоне пакета задач.
"""

from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime

from .task import TaskResult, FailureCategory
from .worker import Worker, WorkerState


@dataclass
class BatchReport:
    """Результаты пакета и затраченное время (wall-clock)."""

    strategy: str
    results: List[TaskResult] = field(default_factory=list)
    elapsed: float = 0.0
    workers: List[Worker] = field(default_factory=list)
    dispatch_metrics: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def total_tasks(self) -> int:
        return len(self.results)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.is_success())

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if r.is_failure())

    @property
    def workers_spawned(self) -> int:
        return len(self.workers)

    @property
    def success_rate(self) -> float:
        if not self.results:
            return 0.0
        return (self.succeeded / self.total_tasks) * 100

    @property
    def throughput_per_second(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.total_tasks / self.elapsed

    def failures_by_category(self) -> Dict[str, int]:
        """Количество ошибок по категориям."""
        counts: Dict[str, int] = {}
        for result in self.results:
            if result.is_failure():
                key = (result.category or FailureCategory.CONVERSION_ERROR).value
                counts[key] = counts.get(key, 0) + 1
        return counts

    def format_elapsed(self) -> str:
        """Время в формате исходного бенчмарка: ``Took: 3s, 141.527ms``."""
        seconds = int(self.elapsed)
        millis = (self.elapsed - seconds) * 1000
        return f"Took: {seconds}s, {millis:.3f}ms"

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return {
            'strategy': self.strategy,
            'elapsed': self.elapsed,
            'total_tasks': self.total_tasks,
            'succeeded': self.succeeded,
            'failed': self.failed,
            'success_rate': self.success_rate,
            'throughput_per_second': self.throughput_per_second,
            'workers_spawned': self.workers_spawned,
            'workers_terminated': sum(1 for w in self.workers if w.state == WorkerState.TERMINATED),
            'failures_by_category': self.failures_by_category(),
            'dispatch_metrics': dict(self.dispatch_metrics),
        }
