"""
Точка входа воркер-процесса.
"""

import os
import time
from typing import Optional

from .channel import (
    WorkerChannel,
    ChannelConfig,
    is_exit_message,
    parse_request,
    make_success,
    make_failure,
)
from .conversion import Converter, ConversionOptions, convert_file
from ..utils.logger import get_logger, setup_logging
from ..exceptions import HeicBenchError, ChannelError


logger = get_logger(__name__)


def run_worker(
    connection,
    converter: Converter,
    options: ConversionOptions,
    log_level: Optional[str] = None
):
    """
    Основной цикл воркера: запрос -> чтение -> конвертация -> запись -> ответ.

    Ошибки задачи отправляются родителю сообщением и не завершают цикл.
    Цикл завершается по ``{"exit": True}`` или при обрыве канала.
    """
    if log_level:
        setup_logging(level=log_level)

    channel = WorkerChannel(connection, ChannelConfig())
    pid = os.getpid()
    tasks_done = 0
    logger.debug(f"Worker process {pid} started")

    try:
        while True:
            try:
                message = channel.receive()
            except ChannelError:
                logger.warning(f"Worker process {pid}: parent channel closed, exiting")
                break

            if is_exit_message(message):
                logger.debug(f"Worker process {pid} received exit after {tasks_done} tasks")
                break

            response = _handle_request(message, converter, options)
            try:
                channel.send(response)
            except ChannelError:
                logger.warning(f"Worker process {pid}: cannot deliver response, exiting")
                break
            tasks_done += 1
    finally:
        channel.close()
        logger.debug(f"Worker process {pid} stopped")


def _handle_request(message, converter: Converter, options: ConversionOptions) -> dict:
    """Выполнение одного запроса; результат всегда сообщение, а не исключение."""
    start_time = time.perf_counter()

    try:
        input_path, output_path = parse_request(message)
        bytes_written = convert_file(input_path, output_path, converter, options)
    except HeicBenchError as e:
        logger.error(f"Task failed in worker: {e}")
        return make_failure(e.category, str(e))

    logger.debug(f"Converted {input_path} -> {output_path} in {time.perf_counter() - start_time:.3f}s")
    return make_success(output_path, bytes_written)
