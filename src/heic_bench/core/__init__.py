"""
Основные компоненты: канал, диспетчер, менеджер воркеров, стратегии.
"""

from .channel import WorkerChannel, ChannelConfig, EXIT_MESSAGE
from .conversion import ConversionOptions, convert_image, convert_file
from .dispatcher import Dispatcher, DispatchConfig
from .worker_manager import WorkerManager, WorkerManagerConfig
from .strategies import (
    BatchStrategy,
    StrategyConfig,
    InProcessParallel,
    InProcessSequential,
    PersistentSequential,
    OneShotPerTask,
    STRATEGIES,
    create_strategy,
)
from .benchmark import BenchmarkRunner, BenchmarkConfig, BENCHMARKS

__all__ = [
    "WorkerChannel",
    "ChannelConfig",
    "EXIT_MESSAGE",
    "ConversionOptions",
    "convert_image",
    "convert_file",
    "Dispatcher",
    "DispatchConfig",
    "WorkerManager",
    "WorkerManagerConfig",
    "BatchStrategy",
    "StrategyConfig",
    "InProcessParallel",
    "InProcessSequential",
    "PersistentSequential",
    "OneShotPerTask",
    "STRATEGIES",
    "create_strategy",
    "BenchmarkRunner",
    "BenchmarkConfig",
    "BENCHMARKS"
]
