"""
Общие фикстуры тестов.
"""

import pytest
from PIL import Image

from heic_bench.core.dispatcher import DispatchConfig
from heic_bench.core.strategies import StrategyConfig
from heic_bench.core.worker_manager import WorkerManagerConfig
from heic_bench.models.task import Task


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: tests that spawn real worker processes")


@pytest.fixture
def make_input(tmp_path):
    """Фабрика входных файлов с заданным содержимым."""
    def _make(name, content=b"heic-bytes"):
        path = tmp_path / "in" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make


@pytest.fixture
def make_tasks(tmp_path, make_input):
    """Фабрика задач: имя -> содержимое входа; выход в tmp_path/out/<имя>.jpg."""
    def _make(entries):
        return [
            Task(input_path=str(make_input(f"{name}.heic", content)),
                 output_path=str(tmp_path / "out" / f"{name}.jpg"),
                 name=name)
            for name, content in entries
        ]
    return _make


@pytest.fixture
def strategy_config():
    """Короткие таймауты, чтобы зависший воркер не тормозил тесты."""
    return StrategyConfig(
        max_concurrency=3,
        dispatch=DispatchConfig(timeout=30.0),
        worker_manager=WorkerManagerConfig(shutdown_timeout=10.0, kill_timeout=2.0)
    )


@pytest.fixture
def sample_png(tmp_path):
    """Настоящее изображение для конвертера по умолчанию."""
    path = tmp_path / "sample.png"
    Image.new("RGBA", (16, 16), (255, 0, 0, 128)).save(path, format="PNG")
    return path
