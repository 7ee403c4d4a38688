"""
Запуск бенчмарков: пять сценариев исходного стенда.

    1 - параллельные вызовы в текущем процессе
    2 - последовательные вызовы в текущем процессе
    3 - одна задача в одном воркер-процессе
    4 - последовательная обработка в одном воркер-процессе
    5 - воркер-процесс на каждую задачу
"""

import shutil
from pathlib import Path
from typing import Dict, List, Optional
from dataclasses import dataclass

from .conversion import Converter, ConversionOptions, convert_image
from .strategies import StrategyConfig, create_strategy
from ..models.task import Task
from ..models.batch_report import BatchReport
from ..utils.logger import get_logger, log_execution_time
from ..exceptions import ValidationError


logger = get_logger(__name__)


@dataclass
class BenchmarkConfig:
    """Конфигурация бенчмарка."""
    input_path: str = "./test_image.heic"
    output_dir: str = "./test_results"
    task_count: int = 100
    output_pattern: str = "result-{index}.jpg"
    single_output_name: str = "C001.jpg"  # Выход сценария 3
    clean_output: bool = False  # Очищать output_dir перед прогоном


@dataclass(frozen=True)
class BenchmarkCase:
    """Сценарий: стратегия и размер пакета."""
    selector: str
    strategy: str
    description: str
    single_task: bool = False


BENCHMARKS: Dict[str, BenchmarkCase] = {
    "1": BenchmarkCase("1", "in_process_parallel", "in-process parallel conversions"),
    "2": BenchmarkCase("2", "in_process_sequential", "in-process sequential conversions"),
    "3": BenchmarkCase("3", "one_shot_per_task", "single task on a single worker process", single_task=True),
    "4": BenchmarkCase("4", "persistent_sequential", "sequential tasks on one reused worker process"),
    "5": BenchmarkCase("5", "one_shot_per_task", "one worker process per task"),
}


def build_tasks(config: BenchmarkConfig, single_task: bool = False) -> List[Task]:
    """Пакет задач: один и тот же вход, разные выходные файлы."""
    output_dir = Path(config.output_dir)

    if single_task:
        return [Task(input_path=config.input_path, output_path=str(output_dir / config.single_output_name), name="task-0")]

    return [
        Task(
            input_path=config.input_path,
            output_path=str(output_dir / config.output_pattern.format(index=index)),
            name=f"task-{index}"
        )
        for index in range(config.task_count)
    ]


def prepare_output_dir(config: BenchmarkConfig):
    """Создание (и, по запросу, очистка) выходной директории."""
    output_dir = Path(config.output_dir)
    if config.clean_output and output_dir.exists():
        logger.info(f"Cleaning output directory {output_dir}")
        shutil.rmtree(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)


class BenchmarkRunner:
    """Выполняет сценарий по селектору и возвращает отчет."""

    def __init__(
        self,
        benchmark_config: Optional[BenchmarkConfig] = None,
        strategy_config: Optional[StrategyConfig] = None,
        options: Optional[ConversionOptions] = None,
        converter: Converter = convert_image
    ):
        self.benchmark_config = benchmark_config or BenchmarkConfig()
        self.strategy_config = strategy_config or StrategyConfig()
        self.options = options or ConversionOptions()
        self.converter = converter

    @staticmethod
    def is_valid_selector(selector: Optional[str]) -> bool:
        return selector in BENCHMARKS

    @log_execution_time
    def run(self, selector: str) -> BatchReport:
        """
        Выполнение сценария.

        Args:
            selector: Номер сценария ``"1"``..``"5"``

        Raises:
            ValidationError: неизвестный селектор
        """
        case = BENCHMARKS.get(selector)
        if case is None:
            raise ValidationError(f"Unknown benchmark '{selector}', expected one of {sorted(BENCHMARKS)}")

        prepare_output_dir(self.benchmark_config)
        tasks = build_tasks(self.benchmark_config, single_task=case.single_task)

        logger.info(f"Benchmark {case.selector}: {case.description}, {len(tasks)} task(s)")

        strategy = create_strategy(case.strategy, self.converter, self.options, self.strategy_config)
        return strategy.run(tasks)
