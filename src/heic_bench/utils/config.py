"""
Система конфигурации бенчмарка.
"""

import json
import multiprocessing
import os
import yaml
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, asdict
from pathlib import Path

from ..core.conversion import ConversionOptions
from ..core.dispatcher import DispatchConfig
from ..core.worker_manager import WorkerManagerConfig
from ..core.benchmark import BenchmarkConfig
from ..core.strategies import StrategyConfig
from ..exceptions import ConfigurationError


@dataclass
class Config:
    """Основная конфигурация."""

    log_level: str = "INFO"
    log_file: Optional[str] = None
    max_concurrency: Optional[int] = None
    respawn_lost_worker: bool = True

    # Конфигурации компонентов
    conversion: ConversionOptions = None
    dispatch: DispatchConfig = None
    worker_manager: WorkerManagerConfig = None
    benchmark: BenchmarkConfig = None

    def __post_init__(self):
        """Инициализация конфигураций по умолчанию."""
        if self.conversion is None:
            self.conversion = ConversionOptions()
        if self.dispatch is None:
            self.dispatch = DispatchConfig()
        if self.worker_manager is None:
            self.worker_manager = WorkerManagerConfig()
        if self.benchmark is None:
            self.benchmark = BenchmarkConfig()

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Config':
        """Создание из словаря."""
        data = dict(data or {})

        sections = {
            'conversion': ConversionOptions,
            'dispatch': DispatchConfig,
            'worker_manager': WorkerManagerConfig,
            'benchmark': BenchmarkConfig,
        }

        try:
            components = {
                key: section_cls(**(data.pop(key, None) or {}))
                for key, section_cls in sections.items()
            }
            return cls(**data, **components)
        except TypeError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def validate(self) -> bool:
        """Валидация конфигурации."""
        errors = []

        if self.max_concurrency is not None and self.max_concurrency < 1:
            errors.append("max_concurrency must be >= 1")

        if not 0.0 <= self.conversion.quality <= 1.0:
            errors.append("conversion.quality must be between 0 and 1")

        if not self.conversion.format:
            errors.append("conversion.format must not be empty")

        if self.dispatch.timeout is not None and self.dispatch.timeout <= 0:
            errors.append("dispatch.timeout must be > 0 or null")

        if self.worker_manager.start_method not in multiprocessing.get_all_start_methods():
            errors.append(
                f"worker_manager.start_method must be one of {multiprocessing.get_all_start_methods()}"
            )

        if self.worker_manager.shutdown_timeout < 0:
            errors.append("worker_manager.shutdown_timeout must be >= 0")

        if self.worker_manager.poll_interval <= 0:
            errors.append("worker_manager.poll_interval must be > 0")

        if self.benchmark.task_count < 1:
            errors.append("benchmark.task_count must be >= 1")

        if "{index}" not in self.benchmark.output_pattern:
            errors.append("benchmark.output_pattern must contain '{index}'")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def to_strategy_config(self) -> StrategyConfig:
        """Конфигурация для стратегий."""
        return StrategyConfig(
            max_concurrency=self.max_concurrency,
            respawn_lost_worker=self.respawn_lost_worker,
            dispatch=self.dispatch,
            worker_manager=self.worker_manager
        )


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации (.yaml, .yml или .json)

    Returns:
        Объект конфигурации
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise ConfigurationError(f"Configuration file not found: {file_path}")

    with open(file_path, 'r', encoding='utf-8') as f:
        if file_path.suffix.lower() in ['.yaml', '.yml']:
            data = yaml.safe_load(f)
        elif file_path.suffix.lower() == '.json':
            data = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

    config = Config.from_dict(data)
    config.validate()

    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """
    Сохранение конфигурации в файл.

    Args:
        config: Объект конфигурации
        file_path: Путь к файлу
        format: Формат файла ('yaml' или 'json')
    """
    file_path = Path(file_path)
    data = config.to_dict()

    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        if format.lower() == 'yaml':
            yaml.safe_dump(data, f, default_flow_style=False, indent=2)
        elif format.lower() == 'json':
            json.dump(data, f, indent=2, ensure_ascii=False)
        else:
            raise ConfigurationError(f"Unsupported format: {format}")


def load_config_from_env(base: Optional[Config] = None) -> Config:
    """
    Переопределение конфигурации переменными окружения ``HEIC_BENCH_*``.

    Args:
        base: Исходная конфигурация (по умолчанию - значения по умолчанию)

    Returns:
        Объект конфигурации
    """
    config_data = (base or Config()).to_dict()

    if os.getenv('HEIC_BENCH_LOG_LEVEL'):
        config_data['log_level'] = os.getenv('HEIC_BENCH_LOG_LEVEL')

    if os.getenv('HEIC_BENCH_MAX_CONCURRENCY'):
        config_data['max_concurrency'] = int(os.getenv('HEIC_BENCH_MAX_CONCURRENCY'))

    if os.getenv('HEIC_BENCH_DISPATCH_TIMEOUT'):
        config_data['dispatch']['timeout'] = float(os.getenv('HEIC_BENCH_DISPATCH_TIMEOUT'))

    if os.getenv('HEIC_BENCH_START_METHOD'):
        config_data['worker_manager']['start_method'] = os.getenv('HEIC_BENCH_START_METHOD')

    if os.getenv('HEIC_BENCH_QUALITY'):
        config_data['conversion']['quality'] = float(os.getenv('HEIC_BENCH_QUALITY'))

    if os.getenv('HEIC_BENCH_INPUT'):
        config_data['benchmark']['input_path'] = os.getenv('HEIC_BENCH_INPUT')

    if os.getenv('HEIC_BENCH_OUTPUT_DIR'):
        config_data['benchmark']['output_dir'] = os.getenv('HEIC_BENCH_OUTPUT_DIR')

    if os.getenv('HEIC_BENCH_TASK_COUNT'):
        config_data['benchmark']['task_count'] = int(os.getenv('HEIC_BENCH_TASK_COUNT'))

    return Config.from_dict(config_data)
