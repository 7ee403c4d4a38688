"""
Утилиты бенчмарка.

Конфигурация импортируется явно из ``heic_bench.utils.config``: она зависит
от модулей ``core``, которые сами используют логгер из этого пакета.
"""

from .logger import get_logger, setup_logging, log_execution_time

__all__ = [
    "get_logger",
    "setup_logging",
    "log_execution_time"
]
