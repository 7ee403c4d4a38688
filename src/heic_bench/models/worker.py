"""
Модели воркеров-процессов.
"""

import uuid
from enum import Enum
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock

from ..exceptions import WorkerStateError, WorkerUnavailableError


class WorkerState(Enum):
    """Состояния жизненного цикла воркера."""
    STARTING = "starting"
    READY = "ready"
    BUSY = "busy"
    EXITING = "exiting"
    TERMINATED = "terminated"


# BUSY -> TERMINATED допустим только при аварийном завершении
_TRANSITIONS = {
    WorkerState.STARTING: {WorkerState.READY, WorkerState.TERMINATED},
    WorkerState.READY: {WorkerState.BUSY, WorkerState.EXITING, WorkerState.TERMINATED},
    WorkerState.BUSY: {WorkerState.READY, WorkerState.TERMINATED},
    WorkerState.EXITING: {WorkerState.TERMINATED},
    WorkerState.TERMINATED: set(),
}


@dataclass
class WorkerMetrics:
    """Метрики воркера."""

    tasks_completed: int = 0
    tasks_failed: int = 0
    total_execution_time: float = 0.0
    average_execution_time: float = 0.0
    last_task_at: Optional[datetime] = None
    uptime: float = 0.0

    def update_execution_time(self, execution_time: float, success: bool = True):
        """Обновление времени выполнения."""
        if success:
            self.tasks_completed += 1
        else:
            self.tasks_failed += 1
        self.total_execution_time += execution_time
        self.average_execution_time = self.total_execution_time / (self.tasks_completed + self.tasks_failed)
        self.last_task_at = datetime.now()

    def get_success_rate(self) -> float:
        """Получение процента успешных задач."""
        total = self.tasks_completed + self.tasks_failed
        if total == 0:
            return 0.0
        return (self.tasks_completed / total) * 100


@dataclass
class Worker:
    """
    Дескриптор воркера на стороне родителя.

    Хранит процесс, канал и состояние. Все переходы состояния проходят
    под локом и записываются в ``state_history``.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""
    state: WorkerState = WorkerState.STARTING
    process: Any = None
    channel: Any = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: Optional[datetime] = None
    stopped_at: Optional[datetime] = None
    exit_code: Optional[int] = None
    abnormal_exit: bool = False
    metrics: WorkerMetrics = field(default_factory=WorkerMetrics)
    state_history: List[WorkerState] = field(default_factory=lambda: [WorkerState.STARTING])
    metadata: Dict[str, Any] = field(default_factory=dict)
    _lock: Lock = field(default_factory=Lock, repr=False)

    def _transition(self, new_state: WorkerState):
        if new_state not in _TRANSITIONS[self.state]:
            raise WorkerStateError(
                f"Worker {self.name or self.id}: illegal transition {self.state.value} -> {new_state.value}"
            )
        self.state = new_state
        self.state_history.append(new_state)

    def mark_ready(self):
        """Процесс запущен (или задача завершена) - воркер готов принять задачу."""
        with self._lock:
            if self.state == WorkerState.STARTING:
                self.started_at = datetime.now()
            self._transition(WorkerState.READY)

    def mark_busy(self):
        """
        Захват воркера под задачу: проверка и переход выполняются под одной блокировкой.

        Raises:
            WorkerUnavailableError: воркер не в состоянии READY
        """
        with self._lock:
            if self.state != WorkerState.READY:
                raise WorkerUnavailableError(
                    f"Worker {self.name or self.id} is {self.state.value}, cannot accept a task"
                )
            self._transition(WorkerState.BUSY)

    def mark_exiting(self):
        with self._lock:
            self._transition(WorkerState.EXITING)

    def mark_terminated(self, abnormal: bool = False):
        """
        Перевод в TERMINATED. Повторный вызов ничего не делает.

        Args:
            abnormal: Аварийное завершение (единственный путь из BUSY)
        """
        with self._lock:
            if self.state == WorkerState.TERMINATED:
                return
            if self.state == WorkerState.BUSY and not abnormal:
                raise WorkerStateError(f"Worker {self.name or self.id} cannot stop while busy")
            self._transition(WorkerState.TERMINATED)
            self.abnormal_exit = abnormal
            self.stopped_at = datetime.now()
            if self.started_at:
                self.metrics.uptime = (self.stopped_at - self.started_at).total_seconds()

    def update_metrics(self, execution_time: float, success: bool = True):
        """Обновление метрик."""
        with self._lock:
            self.metrics.update_execution_time(execution_time, success)

    @property
    def pid(self) -> Optional[int]:
        return self.process.pid if self.process is not None else None

    def is_alive(self) -> bool:
        """Жив ли процесс воркера."""
        return self.process is not None and self.process.is_alive()

    def is_available(self) -> bool:
        """Проверка доступности воркера."""
        return self.state == WorkerState.READY

    def is_terminated(self) -> bool:
        return self.state == WorkerState.TERMINATED

    def get_uptime(self) -> float:
        """Получение времени работы."""
        if self.started_at and not self.stopped_at:
            return (datetime.now() - self.started_at).total_seconds()
        return self.metrics.uptime
