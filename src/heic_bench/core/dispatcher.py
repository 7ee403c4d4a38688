"""
Диспетчер: одна задача - один воркер - один ответ.
"""

import time
import threading
from typing import Any, Callable, Optional, Dict
from dataclasses import dataclass

from .channel import make_request
from ..models.task import Task, TaskResult, FailureCategory
from ..models.worker import Worker, WorkerState
from ..utils.logger import get_logger
from ..exceptions import WorkerUnavailableError, ChannelError, DispatchTimeoutError


logger = get_logger(__name__)


@dataclass
class DispatchConfig:
    """Конфигурация диспетчера."""
    timeout: Optional[float] = 120.0  # Дедлайн ответа воркера, None - без ограничения
    log_dispatch_details: bool = True


class Dispatcher:
    """Отправляет задачу воркеру и ждет ровно один результат."""

    def __init__(
        self,
        config: Optional[DispatchConfig] = None,
        on_worker_lost: Optional[Callable[[Worker], None]] = None
    ):
        self.config = config or DispatchConfig()
        self._lock = threading.Lock()
        self._on_worker_lost = on_worker_lost
        self._metrics = self._empty_metrics()

    @staticmethod
    def _empty_metrics() -> Dict[str, Any]:
        return {
            'total_dispatches': 0,
            'successful_dispatches': 0,
            'failed_dispatches': 0,
            'timeout_dispatches': 0,
            'channel_errors': 0,
            'total_dispatch_time': 0.0,
            'average_dispatch_time': 0.0,
            'max_dispatch_time': 0.0,
            'min_dispatch_time': float('inf')
        }

    def set_on_worker_lost(self, callback: Callable[[Worker], None]):
        """Callback для воркера, потерянного по таймауту или обрыву канала."""
        self._on_worker_lost = callback

    def dispatch(self, worker: Worker, task: Task) -> TaskResult:
        """
        Отправка задачи воркеру.

        Args:
            worker: Воркер в состоянии READY
            task: Задача

        Returns:
            Результат задачи (успех или ошибка)

        Raises:
            WorkerUnavailableError: воркер завершен, завершается, занят или канал закрыт
        """
        self._check_available(worker, task)

        start_time = time.perf_counter()
        worker.mark_busy()

        if self.config.log_dispatch_details:
            logger.info(f"Dispatching task {task.id} to {worker.name} (pid {worker.pid})")

        try:
            worker.channel.send(make_request(task))
            response = worker.channel.receive(timeout=self.config.timeout, is_alive=worker.is_alive)

        except DispatchTimeoutError as e:
            execution_time = time.perf_counter() - start_time
            logger.error(f"Task {task.id} timed out on {worker.name} after {execution_time:.3f}s")
            self._lose_worker(worker)
            worker.update_metrics(execution_time, False)
            self._update_metrics(execution_time, False, is_timeout=True)
            return TaskResult.failure(
                task.id, FailureCategory.TIMEOUT, str(e),
                execution_time=execution_time, worker_id=worker.id
            )

        except ChannelError as e:
            execution_time = time.perf_counter() - start_time
            logger.error(f"Worker {worker.name} lost while running task {task.id}: {e}")
            self._lose_worker(worker)
            worker.update_metrics(execution_time, False)
            self._update_metrics(execution_time, False, is_channel_error=True)
            return TaskResult.failure(
                task.id, FailureCategory.CHANNEL_ERROR, str(e),
                execution_time=execution_time, worker_id=worker.id
            )

        execution_time = time.perf_counter() - start_time
        worker.mark_ready()
        return self._build_result(worker, task, response, execution_time)

    def _check_available(self, worker: Worker, task: Task):
        if worker.state in (WorkerState.EXITING, WorkerState.TERMINATED):
            raise WorkerUnavailableError(
                f"Cannot dispatch task {task.id}: {worker.name} is {worker.state.value}"
            )
        if worker.channel is None or worker.channel.closed:
            raise WorkerUnavailableError(f"Cannot dispatch task {task.id}: {worker.name} channel is closed")
        if worker.state != WorkerState.READY:
            raise WorkerUnavailableError(
                f"Cannot dispatch task {task.id}: {worker.name} is {worker.state.value}"
            )

    def _build_result(self, worker: Worker, task: Task, response: Dict[str, Any], execution_time: float) -> TaskResult:
        if response.get("ok"):
            worker.update_metrics(execution_time, True)
            self._update_metrics(execution_time, True)

            if self.config.log_dispatch_details:
                logger.info(f"Task {task.id} completed on {worker.name} in {execution_time:.3f}s")

            return TaskResult.success(
                task.id,
                metadata={
                    'output_path': response.get("outputPath"),
                    'bytes_written': response.get("bytesWritten"),
                },
                execution_time=execution_time,
                worker_id=worker.id
            )

        error = response.get("error") or {}
        try:
            category = FailureCategory(error.get("category"))
        except ValueError:
            category = FailureCategory.CONVERSION_ERROR
        message = error.get("message", "unknown worker error")

        worker.update_metrics(execution_time, False)
        self._update_metrics(execution_time, False)
        logger.error(f"Task {task.id} failed on {worker.name} ({category.value}): {message}")

        return TaskResult.failure(
            task.id, category, message,
            execution_time=execution_time, worker_id=worker.id
        )

    def _lose_worker(self, worker: Worker):
        """Воркер больше не пригоден: завершаем его."""
        if self._on_worker_lost:
            self._on_worker_lost(worker)
        else:
            worker.mark_terminated(abnormal=True)

    def _update_metrics(
        self,
        execution_time: float,
        success: bool,
        is_timeout: bool = False,
        is_channel_error: bool = False
    ):
        """Обновление метрик диспетчера."""
        with self._lock:
            self._metrics['total_dispatches'] += 1
            self._metrics['total_dispatch_time'] += execution_time
            self._metrics['max_dispatch_time'] = max(self._metrics['max_dispatch_time'], execution_time)
            self._metrics['min_dispatch_time'] = min(self._metrics['min_dispatch_time'], execution_time)
            self._metrics['average_dispatch_time'] = (
                self._metrics['total_dispatch_time'] / self._metrics['total_dispatches']
            )

            if success:
                self._metrics['successful_dispatches'] += 1
            else:
                self._metrics['failed_dispatches'] += 1
                if is_timeout:
                    self._metrics['timeout_dispatches'] += 1
                if is_channel_error:
                    self._metrics['channel_errors'] += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик диспетчера."""
        with self._lock:
            metrics = self._metrics.copy()

        total = metrics['total_dispatches']
        metrics['success_rate'] = (metrics['successful_dispatches'] / total) * 100 if total else 0.0

        if metrics['min_dispatch_time'] == float('inf'):
            metrics['min_dispatch_time'] = 0.0

        return metrics

    def reset_metrics(self):
        """Сброс метрик."""
        with self._lock:
            self._metrics = self._empty_metrics()

        logger.info("Dispatcher metrics reset")

    def __repr__(self) -> str:
        metrics = self.get_metrics()
        return f"Dispatcher(dispatches={metrics['total_dispatches']}, success_rate={metrics['success_rate']:.1f}%)"
