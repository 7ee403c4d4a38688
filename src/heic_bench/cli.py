"""
Командная строка бенчмарка.

    heic-bench <1-5> [опции]
"""

import argparse
import sys
from typing import List, Optional

from .core.benchmark import BENCHMARKS, BenchmarkRunner
from .utils.config import Config, load_config, load_config_from_env
from .utils.logger import get_logger, setup_logging
from .exceptions import HeicBenchError


logger = get_logger(__name__)


USAGE = """usage:
    heic-bench <number (1 to 5)> [options]

benchmarks:
""" + "\n".join(f"    {case.selector} - {case.description}" for case in BENCHMARKS.values())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="heic-bench",
        description="Image conversion throughput under different concurrency strategies"
    )
    parser.add_argument(
        "benchmark",
        nargs="?",
        help="Benchmark number (1 to 5)"
    )
    parser.add_argument("--config", type=str, help="Path to a YAML or JSON configuration file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument("--count", type=int, help="Number of tasks in the batch")
    parser.add_argument("--input", type=str, help="Input image path")
    parser.add_argument("--output-dir", type=str, help="Directory for converted images")
    parser.add_argument("--timeout", type=float, help="Per-dispatch timeout in seconds")
    parser.add_argument("--max-concurrency", type=int, help="Upper bound on concurrent conversions/workers")
    parser.add_argument("--clean", action="store_true", help="Empty the output directory before running")
    return parser


def resolve_config(args: argparse.Namespace) -> Config:
    """Файл -> переменные окружения -> аргументы командной строки."""
    config = load_config(args.config) if args.config else Config()
    config = load_config_from_env(config)

    if args.log_level:
        config.log_level = args.log_level
    if args.count is not None:
        config.benchmark.task_count = args.count
    if args.input:
        config.benchmark.input_path = args.input
    if args.output_dir:
        config.benchmark.output_dir = args.output_dir
    if args.timeout is not None:
        config.dispatch.timeout = args.timeout
    if args.max_concurrency is not None:
        config.max_concurrency = args.max_concurrency
    if args.clean:
        config.benchmark.clean_output = True

    config.validate()
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Точка входа; код возврата 1, если хотя бы одна задача не выполнена."""
    args = build_parser().parse_args(argv)

    if not BenchmarkRunner.is_valid_selector(args.benchmark):
        print(USAGE)
        return 0

    try:
        config = resolve_config(args)
    except (HeicBenchError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(level=config.log_level, log_file=config.log_file)

    runner = BenchmarkRunner(
        benchmark_config=config.benchmark,
        strategy_config=config.to_strategy_config(),
        options=config.conversion
    )

    try:
        report = runner.run(args.benchmark)
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130
    except HeicBenchError as e:
        logger.error(f"Benchmark failed: {e}")
        return 1

    print(report.format_elapsed())

    if report.failed:
        logger.warning(f"{report.failed} of {report.total_tasks} task(s) failed: {report.failures_by_category()}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
