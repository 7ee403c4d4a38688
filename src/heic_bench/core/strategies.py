"""
Стратегии выполнения пакета задач.

Все стратегии возвращают результаты в порядке входных задач и меряют
общее wall-clock время пакета.
"""

import os
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Type
from dataclasses import dataclass, field

from .conversion import Converter, ConversionOptions, convert_image, convert_file
from .dispatcher import Dispatcher, DispatchConfig
from .worker_manager import WorkerManager, WorkerManagerConfig
from ..models.task import Task, TaskResult, FailureCategory
from ..models.worker import Worker
from ..models.batch_report import BatchReport
from ..utils.logger import get_logger
from ..exceptions import (
    ConversionError,
    ReadError,
    WriteError,
    WorkerUnavailableError,
    ValidationError,
)


logger = get_logger(__name__)


@dataclass
class StrategyConfig:
    """Конфигурация стратегий."""

    max_concurrency: Optional[int] = None  # None - os.cpu_count()
    respawn_lost_worker: bool = True

    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    worker_manager: WorkerManagerConfig = field(default_factory=WorkerManagerConfig)

    def concurrency_for(self, task_count: int) -> int:
        limit = self.max_concurrency or os.cpu_count() or 1
        return max(1, min(limit, task_count))


class BatchStrategy(ABC):
    """Базовая стратегия."""

    name = "base"

    def __init__(
        self,
        converter: Converter = convert_image,
        options: Optional[ConversionOptions] = None,
        config: Optional[StrategyConfig] = None
    ):
        self.converter = converter
        self.options = options or ConversionOptions()
        self.config = config or StrategyConfig()
        self._workers: List[Worker] = []
        self._dispatch_metrics: Dict = {}

    def run(self, tasks: Sequence[Task]) -> BatchReport:
        """Выполнение пакета с замером общего времени."""
        tasks = list(tasks)
        self._workers = []
        self._dispatch_metrics = {}

        started_at = datetime.now()
        start = time.perf_counter()
        results = self.run_tasks(tasks)
        elapsed = time.perf_counter() - start

        report = BatchReport(
            strategy=self.name,
            results=results,
            elapsed=elapsed,
            workers=list(self._workers),
            dispatch_metrics=dict(self._dispatch_metrics),
            started_at=started_at,
            finished_at=datetime.now()
        )
        logger.info(
            f"{self.name}: {report.succeeded}/{report.total_tasks} succeeded, "
            f"{report.workers_spawned} worker(s), {report.format_elapsed()}"
        )
        return report

    @abstractmethod
    def run_tasks(self, tasks: Sequence[Task]) -> List[TaskResult]:
        """Результаты в порядке задач."""

    @staticmethod
    def validate_tasks(tasks: Sequence[Task]):
        """Идентификаторы и выходные пути задач пакета должны быть уникальны."""
        ids = [t.id for t in tasks]
        if len(set(ids)) != len(ids):
            raise ValidationError("Task ids must be unique within a batch")

        outputs = [os.path.abspath(os.fspath(t.output_path)) for t in tasks]
        if len(set(outputs)) != len(outputs):
            raise ValidationError("Task output paths must be unique within a batch")

    def _convert_in_process(self, task: Task) -> TaskResult:
        start_time = time.perf_counter()

        try:
            bytes_written = convert_file(task.input_path, task.output_path, self.converter, self.options)
        except (ReadError, ConversionError, WriteError) as e:
            logger.error(f"Task {task.id} failed: {e}")
            return TaskResult.failure(
                task.id, FailureCategory.from_exception(e), str(e),
                execution_time=time.perf_counter() - start_time
            )

        return TaskResult.success(
            task.id,
            metadata={'output_path': os.fspath(task.output_path), 'bytes_written': bytes_written},
            execution_time=time.perf_counter() - start_time
        )

    def _new_manager(self) -> WorkerManager:
        return WorkerManager(self.config.worker_manager, self.converter, self.options)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(max_concurrency={self.config.max_concurrency})"


class InProcessSequential(BatchStrategy):
    """Конвертация в вызывающем процессе, по одной задаче."""

    name = "in_process_sequential"

    def run_tasks(self, tasks: Sequence[Task]) -> List[TaskResult]:
        self.validate_tasks(tasks)
        return [self._convert_in_process(task) for task in tasks]


class InProcessParallel(BatchStrategy):
    """
    Конвертация в вызывающем процессе, все задачи сразу на пуле потоков.

    Без явного ``max_concurrency`` поток запускается на каждую задачу.
    """

    name = "in_process_parallel"

    def run_tasks(self, tasks: Sequence[Task]) -> List[TaskResult]:
        self.validate_tasks(tasks)
        if not tasks:
            return []

        with ThreadPoolExecutor(
            max_workers=min(self.config.max_concurrency or len(tasks), len(tasks)),
            thread_name_prefix="convert"
        ) as executor:
            futures = [executor.submit(self._convert_in_process, task) for task in tasks]
            return [future.result() for future in futures]


class PersistentSequential(BatchStrategy):
    """Один воркер на весь пакет; задачи строго по очереди."""

    name = "persistent_sequential"

    def run_tasks(self, tasks: Sequence[Task]) -> List[TaskResult]:
        self.validate_tasks(tasks)
        if not tasks:
            return []

        results: List[TaskResult] = []

        with self._new_manager() as manager:
            dispatcher = Dispatcher(self.config.dispatch, on_worker_lost=manager.force_terminate)
            try:
                worker = self._replace_worker(manager, None)

                for task in tasks:
                    if worker is not None and worker.is_terminated():
                        worker = self._replace_worker(manager, worker)
                    if worker is None:
                        results.append(TaskResult.failure(
                            task.id, FailureCategory.WORKER_UNAVAILABLE, "No worker available"
                        ))
                        continue
                    results.append(dispatcher.dispatch(worker, task))

                if worker is not None:
                    manager.shutdown_worker(worker)
            finally:
                self._workers = manager.get_workers()
                self._dispatch_metrics = dispatcher.get_metrics()

        return results

    def _replace_worker(self, manager: WorkerManager, lost: Optional[Worker]) -> Optional[Worker]:
        if lost is not None:
            if not self.config.respawn_lost_worker:
                return None
            logger.warning(f"{lost.name} was lost, spawning a replacement")

        try:
            return manager.spawn_worker()
        except WorkerUnavailableError as e:
            logger.error(f"Cannot spawn worker: {e}")
            return None


class OneShotPerTask(BatchStrategy):
    """
    Отдельный воркер на каждую задачу: запуск, одна задача, exit.

    Параллельность ограничена ``max_concurrency``; результаты
    сопоставляются задачам по идентификатору, а не по порядку прихода.
    """

    name = "one_shot_per_task"

    def run_tasks(self, tasks: Sequence[Task]) -> List[TaskResult]:
        self.validate_tasks(tasks)
        if not tasks:
            return []

        by_id: Dict[str, TaskResult] = {}

        with self._new_manager() as manager:
            dispatcher = Dispatcher(self.config.dispatch, on_worker_lost=manager.force_terminate)

            try:
                with ThreadPoolExecutor(
                    max_workers=self.config.concurrency_for(len(tasks)),
                    thread_name_prefix="one-shot"
                ) as executor:
                    futures = {
                        executor.submit(self._run_one, manager, dispatcher, task): task
                        for task in tasks
                    }
                    for future in as_completed(futures):
                        result = future.result()
                        by_id[result.task_id] = result
            finally:
                self._workers = manager.get_workers()
                self._dispatch_metrics = dispatcher.get_metrics()

        return [by_id[task.id] for task in tasks]

    def _run_one(self, manager: WorkerManager, dispatcher: Dispatcher, task: Task) -> TaskResult:
        try:
            worker = manager.spawn_worker()
        except WorkerUnavailableError as e:
            return TaskResult.failure(task.id, FailureCategory.WORKER_UNAVAILABLE, str(e))

        try:
            return dispatcher.dispatch(worker, task)
        finally:
            manager.shutdown_worker(worker)


STRATEGIES: Dict[str, Type[BatchStrategy]] = {
    InProcessParallel.name: InProcessParallel,
    InProcessSequential.name: InProcessSequential,
    PersistentSequential.name: PersistentSequential,
    OneShotPerTask.name: OneShotPerTask,
}


def create_strategy(
    name: str,
    converter: Converter = convert_image,
    options: Optional[ConversionOptions] = None,
    config: Optional[StrategyConfig] = None
) -> BatchStrategy:
    """
    Создание стратегии по имени.

    Raises:
        ValidationError: неизвестное имя
    """
    try:
        strategy_cls = STRATEGIES[name]
    except KeyError:
        raise ValidationError(f"Unknown strategy '{name}', expected one of {sorted(STRATEGIES)}") from None
    return strategy_cls(converter=converter, options=options, config=config)
