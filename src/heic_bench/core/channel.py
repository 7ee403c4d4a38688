"""
Канал сообщений между родителем и воркером-процессом.

Протокол:
    запрос      {"inputPath": str, "outputPath": str}
    завершение  {"exit": True}
    успех       {"ok": True, "outputPath": str, "bytesWritten": int}
    ошибка      {"ok": False, "error": {"category": str, "message": str}}

Обрыв канала (EOF) или смерть процесса - "событие ошибки" для ожидающей стороны.
"""

import os
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple
from dataclasses import dataclass

from ..models.task import Task
from ..utils.logger import get_logger
from ..exceptions import ChannelError, ConversionError, DispatchTimeoutError


logger = get_logger(__name__)


EXIT_MESSAGE = {"exit": True}


def make_request(task: Task) -> Dict[str, str]:
    """Сообщение-запрос для задачи."""
    return {"inputPath": os.fspath(task.input_path), "outputPath": os.fspath(task.output_path)}


def is_exit_message(message: Dict[str, Any]) -> bool:
    return bool(message.get("exit"))


def parse_request(message: Dict[str, Any]) -> Tuple[str, str]:
    """
    Разбор запроса на стороне воркера.

    Канал при этом исправен, поэтому ошибка относится к задаче, а не к воркеру.

    Raises:
        ConversionError: если сообщение не является запросом
    """
    try:
        return message["inputPath"], message["outputPath"]
    except (KeyError, TypeError) as e:
        raise ConversionError(f"Malformed request message: {message!r}") from e


def make_success(output_path: str, bytes_written: int) -> Dict[str, Any]:
    return {"ok": True, "outputPath": output_path, "bytesWritten": bytes_written}


def make_failure(category: str, message: str) -> Dict[str, Any]:
    return {"ok": False, "error": {"category": category, "message": message}}


@dataclass
class ChannelConfig:
    """Конфигурация канала."""
    poll_interval: float = 0.05  # Шаг опроса трубы при ожидании ответа


class WorkerChannel:
    """Обертка над ``multiprocessing.connection.Connection`` с таймаутом и проверкой жизни процесса."""

    def __init__(self, connection, config: Optional[ChannelConfig] = None):
        self.config = config or ChannelConfig()
        self._connection = connection
        self._closed = False
        self._lock = threading.Lock()

        self._metrics = {
            'messages_sent': 0,
            'messages_received': 0,
            'errors': 0
        }

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: Dict[str, Any]):
        """
        Отправка сообщения.

        Raises:
            ChannelError: канал закрыт или противоположная сторона исчезла
        """
        if self._closed:
            raise ChannelError("Channel is closed")

        try:
            self._connection.send(message)
        except (BrokenPipeError, EOFError, OSError, ValueError) as e:
            self._metrics['errors'] += 1
            raise ChannelError(f"Failed to send message: {e}") from e

        self._metrics['messages_sent'] += 1
        logger.debug(f"Sent message {message}")

    def receive(
        self,
        timeout: Optional[float] = None,
        is_alive: Optional[Callable[[], bool]] = None
    ) -> Dict[str, Any]:
        """
        Ожидание ровно одного сообщения.

        Args:
            timeout: Дедлайн в секундах (None - ждать без ограничения)
            is_alive: Проверка жизни процесса на противоположной стороне

        Returns:
            Полученное сообщение

        Raises:
            DispatchTimeoutError: дедлайн истек
            ChannelError: EOF или процесс умер, не ответив
        """
        if self._closed:
            raise ChannelError("Channel is closed")

        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            wait = self.config.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise DispatchTimeoutError(f"No response within {timeout}s")
                wait = min(wait, remaining)

            try:
                if self._connection.poll(wait):
                    message = self._connection.recv()
                    self._metrics['messages_received'] += 1
                    return message
            except (EOFError, OSError) as e:
                self._metrics['errors'] += 1
                raise ChannelError(f"Channel closed by peer: {e!r}") from e

            # Процесс мог умереть, не закрыв трубу корректно
            if is_alive is not None and not is_alive():
                if self._connection.poll(0):
                    continue
                self._metrics['errors'] += 1
                raise ChannelError("Peer process exited without responding")

    def close(self):
        """Закрытие канала. Повторный вызов безопасен."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        try:
            self._connection.close()
        except OSError as e:
            logger.debug(f"Error closing connection: {e}")

    def get_metrics(self) -> dict:
        """Получение метрик канала."""
        return self._metrics.copy()

    def __repr__(self) -> str:
        return f"WorkerChannel(closed={self._closed}, sent={self._metrics['messages_sent']})"
