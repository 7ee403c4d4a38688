"""
Базовый пример: один пакет задач, все четыре стратегии.

    python examples/basic_usage.py ./test_image.heic
"""

import sys
import tempfile
from pathlib import Path

from heic_bench import (
    Task,
    StrategyConfig,
    ConversionOptions,
    create_strategy,
    setup_logging,
)
from heic_bench.core.strategies import STRATEGIES


def main():
    """Сравнение стратегий на одном входном файле."""
    setup_logging(level="WARNING")

    input_path = sys.argv[1] if len(sys.argv) > 1 else "./test_image.heic"
    options = ConversionOptions(format="JPEG", quality=0.9)
    config = StrategyConfig(max_concurrency=4)

    print(f"=== Конвертация {input_path} ===\n")

    with tempfile.TemporaryDirectory() as output_root:
        for name in STRATEGIES:
            output_dir = Path(output_root) / name
            tasks = [
                Task(input_path=input_path, output_path=str(output_dir / f"result-{i}.jpg"))
                for i in range(10)
            ]

            report = create_strategy(name, options=options, config=config).run(tasks)

            print(f"{name}:")
            print(f"  {report.format_elapsed()}")
            print(f"  Успешно: {report.succeeded}/{report.total_tasks}")
            print(f"  Воркер-процессов: {report.workers_spawned}")
            if report.failed:
                print(f"  Ошибки: {report.failures_by_category()}")
            print()


if __name__ == "__main__":
    main()
