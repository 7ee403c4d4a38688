"""
Бенчмарк конвертации изображений при разных стратегиях конкурентности.

Основные компоненты:
- Dispatcher: одна задача воркеру - один результат
- WorkerManager: запуск, реестр и завершение воркер-процессов
- Стратегии: InProcessParallel, InProcessSequential, PersistentSequential, OneShotPerTask
- BenchmarkRunner: пять сценариев исходного стенда
"""

from .core.dispatcher import Dispatcher, DispatchConfig
from .core.worker_manager import WorkerManager, WorkerManagerConfig
from .core.conversion import ConversionOptions, convert_image
from .core.strategies import (
    StrategyConfig,
    InProcessParallel,
    InProcessSequential,
    PersistentSequential,
    OneShotPerTask,
    create_strategy,
)
from .core.benchmark import BenchmarkRunner, BenchmarkConfig
from .models.task import Task, TaskResult, TaskStatus, FailureCategory
from .models.worker import Worker, WorkerState
from .models.batch_report import BatchReport
from .utils.config import Config, load_config
from .utils.logger import get_logger, setup_logging
from .exceptions import (
    HeicBenchError,
    WorkerUnavailableError,
    ChannelError,
    DispatchTimeoutError,
    ConversionError,
    ReadError,
    WriteError,
    ConfigurationError,
    ValidationError
)

__version__ = "1.0.0"
__author__ = "Worker Pool Team"

__all__ = [
    "Dispatcher",
    "DispatchConfig",
    "WorkerManager",
    "WorkerManagerConfig",
    "ConversionOptions",
    "convert_image",
    "StrategyConfig",
    "InProcessParallel",
    "InProcessSequential",
    "PersistentSequential",
    "OneShotPerTask",
    "create_strategy",
    "BenchmarkRunner",
    "BenchmarkConfig",
    "Task",
    "TaskResult",
    "TaskStatus",
    "FailureCategory",
    "Worker",
    "WorkerState",
    "BatchReport",
    "Config",
    "load_config",
    "get_logger",
    "setup_logging",
    "HeicBenchError",
    "WorkerUnavailableError",
    "ChannelError",
    "DispatchTimeoutError",
    "ConversionError",
    "ReadError",
    "WriteError",
    "ConfigurationError",
    "ValidationError"
]
