"""
Менеджер воркер-процессов: запуск, реестр, корректное и принудительное завершение.
"""

import multiprocessing
import pickle
import threading
from typing import List, Optional, Dict, Any
from dataclasses import dataclass

import psutil

from .channel import WorkerChannel, ChannelConfig, EXIT_MESSAGE
from .conversion import Converter, ConversionOptions, convert_image
from .worker_process import run_worker
from ..models.worker import Worker, WorkerState
from ..utils.logger import get_logger, current_level_name
from ..exceptions import WorkerUnavailableError, ChannelError


logger = get_logger(__name__)


@dataclass
class WorkerManagerConfig:
    """Конфигурация менеджера воркеров."""
    start_method: str = "spawn"  # Метод запуска multiprocessing
    shutdown_timeout: float = 5.0  # Ожидание выхода после {"exit": True}
    kill_timeout: float = 2.0  # Ожидание после SIGTERM перед SIGKILL
    poll_interval: float = 0.05  # Шаг опроса канала


class WorkerManager:
    """
    Владелец всех воркеров одного прогона.

    Каждый запущенный воркер попадает в реестр; выход из контекста
    завершает всех, кто еще жив.
    """

    def __init__(
        self,
        config: Optional[WorkerManagerConfig] = None,
        converter: Converter = convert_image,
        options: Optional[ConversionOptions] = None
    ):
        self.config = config or WorkerManagerConfig()
        self._converter = converter
        self._options = options or ConversionOptions()
        self._context = multiprocessing.get_context(self.config.start_method)
        self._workers: List[Worker] = []
        self._lock = threading.Lock()

        logger.debug(f"WorkerManager initialized with config: {self.config}")

    def spawn_worker(self) -> Worker:
        """
        Запуск нового воркер-процесса.

        Raises:
            WorkerUnavailableError: процесс не удалось запустить
        """
        with self._lock:
            worker = Worker(name=f"worker-{len(self._workers) + 1}")
            self._workers.append(worker)

        parent_conn, child_conn = self._context.Pipe(duplex=True)
        process = self._context.Process(
            target=run_worker,
            args=(child_conn, self._converter, self._options, current_level_name()),
            name=worker.name,
            daemon=True
        )

        try:
            process.start()
        except (OSError, ValueError, TypeError, AttributeError, pickle.PicklingError) as e:
            # TypeError/AttributeError - конвертер не сериализуется для spawn
            parent_conn.close()
            child_conn.close()
            worker.mark_terminated(abnormal=True)
            logger.error(f"Failed to start {worker.name}: {e}")
            raise WorkerUnavailableError(f"Failed to start {worker.name}: {e}") from e

        # Без закрытия своей копии дочернего конца EOF не будет замечен
        child_conn.close()

        worker.process = process
        worker.channel = WorkerChannel(parent_conn, ChannelConfig(poll_interval=self.config.poll_interval))
        worker.mark_ready()

        logger.info(f"Started {worker.name} (pid {process.pid})")
        return worker

    def shutdown_worker(self, worker: Worker, timeout: Optional[float] = None) -> bool:
        """
        Корректное завершение: ``{"exit": True}`` и ожидание выхода процесса.

        Если процесс не вышел за таймаут, он завершается принудительно.

        Returns:
            True если воркер вышел сам
        """
        if worker.is_terminated():
            return True

        if worker.state != WorkerState.READY:
            logger.warning(f"{worker.name} is {worker.state.value}, terminating forcibly")
            self.force_terminate(worker)
            return False

        timeout = self.config.shutdown_timeout if timeout is None else timeout
        worker.mark_exiting()

        try:
            worker.channel.send(EXIT_MESSAGE)
        except ChannelError as e:
            logger.debug(f"{worker.name} channel already gone: {e}")

        worker.process.join(timeout)

        if worker.process.is_alive():
            logger.warning(f"{worker.name} did not exit within {timeout}s, terminating forcibly")
            self.force_terminate(worker)
            return False

        self._finalize(worker, abnormal=False)
        logger.info(f"{worker.name} exited with code {worker.exit_code}")
        return True

    def force_terminate(self, worker: Worker):
        """Принудительное завершение процесса воркера вместе с его потомками."""
        if worker.is_alive():
            logger.warning(f"Force terminating {worker.name} (pid {worker.pid})")
            self._kill_process_tree(worker.pid)
            worker.process.join(self.config.kill_timeout)

        self._finalize(worker, abnormal=True)

    def _kill_process_tree(self, pid: int):
        try:
            parent = psutil.Process(pid)
            processes = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            return

        for process in processes:
            try:
                process.terminate()
            except psutil.NoSuchProcess:
                pass

        _, alive = psutil.wait_procs(processes, timeout=self.config.kill_timeout)
        for process in alive:
            try:
                process.kill()
            except psutil.NoSuchProcess:
                pass

    def _finalize(self, worker: Worker, abnormal: bool):
        if worker.process is not None:
            worker.exit_code = worker.process.exitcode
        if worker.channel is not None:
            worker.channel.close()
        worker.mark_terminated(abnormal=abnormal)

    def terminate_stragglers(self) -> int:
        """
        Завершение всех незавершенных воркеров реестра.

        Returns:
            Количество завершенных воркеров
        """
        stragglers = [w for w in self.get_workers() if not w.is_terminated() or w.is_alive()]

        for worker in stragglers:
            if worker.state == WorkerState.READY:
                self.shutdown_worker(worker)
            else:
                self.force_terminate(worker)

        if stragglers:
            logger.info(f"Terminated {len(stragglers)} straggler worker(s)")
        return len(stragglers)

    def get_workers(self) -> List[Worker]:
        """Получение списка воркеров."""
        with self._lock:
            return self._workers.copy()

    def get_worker_by_id(self, worker_id: str) -> Optional[Worker]:
        """Получение воркера по ID."""
        with self._lock:
            return next((w for w in self._workers if w.id == worker_id), None)

    def get_worker_stats(self) -> Dict[str, Any]:
        """Получение статистики воркеров."""
        workers = self.get_workers()
        total_tasks = sum(w.metrics.tasks_completed for w in workers)
        total_failed = sum(w.metrics.tasks_failed for w in workers)

        return {
            'total_workers': len(workers),
            'ready_workers': sum(1 for w in workers if w.state == WorkerState.READY),
            'busy_workers': sum(1 for w in workers if w.state == WorkerState.BUSY),
            'terminated_workers': sum(1 for w in workers if w.is_terminated()),
            'abnormal_exits': sum(1 for w in workers if w.abnormal_exit),
            'total_tasks_completed': total_tasks,
            'total_tasks_failed': total_failed,
        }

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.terminate_stragglers()

    def __repr__(self) -> str:
        stats = self.get_worker_stats()
        return (f"WorkerManager(workers={stats['total_workers']}, "
                f"ready={stats['ready_workers']}, busy={stats['busy_workers']})")
