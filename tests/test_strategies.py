"""
Тесты стратегий выполнения пакета.
"""

import os
import threading
import time

import pytest

from heic_bench.core.dispatcher import DispatchConfig
from heic_bench.core.worker_manager import WorkerManager
from heic_bench.core.strategies import (
    StrategyConfig,
    InProcessParallel,
    InProcessSequential,
    PersistentSequential,
    OneShotPerTask,
    create_strategy,
)
from heic_bench.models.task import Task, TaskStatus, FailureCategory
from heic_bench.models.worker import WorkerState
from heic_bench.exceptions import ValidationError

from fakes import fake_converter, pid_converter


class ConcurrencyTracker:
    """Конвертер, запоминающий максимум одновременных вызовов."""

    def __init__(self, delay):
        self.delay = delay
        self.active = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, data, options):
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        time.sleep(self.delay)
        with self._lock:
            self.active -= 1
        return data


@pytest.mark.slow
class TestPersistentSequential:
    """Тесты стратегии с одним переиспользуемым воркером."""

    def test_batch_on_one_worker(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"b"), ("c", b"c")])

        report = PersistentSequential(fake_converter, config=strategy_config).run(tasks)

        assert [r.task_id for r in report.results] == [t.id for t in tasks]
        assert report.succeeded == 3
        assert report.workers_spawned == 1

        worker = report.workers[0]
        assert worker.state_history == [
            WorkerState.STARTING,
            WorkerState.READY,
            WorkerState.BUSY,
            WorkerState.READY,
            WorkerState.BUSY,
            WorkerState.READY,
            WorkerState.BUSY,
            WorkerState.READY,
            WorkerState.EXITING,
            WorkerState.TERMINATED,
        ]
        assert not worker.is_alive()

        for task in tasks:
            with open(task.output_path, "rb") as f:
                assert f.read() == os.path.basename(task.output_path)[0].upper().encode()

    def test_same_process_for_every_task(self, make_tasks, strategy_config):
        tasks = make_tasks([(name, b"x") for name in "abcd"])

        report = PersistentSequential(pid_converter, config=strategy_config).run(tasks)

        pids = set()
        for task in tasks:
            with open(task.output_path, "rb") as f:
                pids.add(f.read())
        assert len(pids) == 1
        assert pids != {str(os.getpid()).encode()}
        assert report.workers_spawned == 1

    def test_partial_failure(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"corrupt"), ("c", b"c")])

        report = PersistentSequential(fake_converter, config=strategy_config).run(tasks)

        assert [r.status for r in report.results] == [TaskStatus.SUCCESS, TaskStatus.FAILURE, TaskStatus.SUCCESS]
        assert report.results[1].category == FailureCategory.CONVERSION_ERROR
        assert report.workers_spawned == 1
        assert not report.workers[0].abnormal_exit

    def test_crash_respawns_worker(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"crash"), ("c", b"c")])

        report = PersistentSequential(fake_converter, config=strategy_config).run(tasks)

        assert report.results[0].is_success()
        assert report.results[1].category == FailureCategory.CHANNEL_ERROR
        assert report.results[2].is_success()
        assert report.workers_spawned == 2
        assert report.workers[0].abnormal_exit
        assert not report.workers[1].abnormal_exit

    def test_crash_without_respawn(self, make_tasks, strategy_config):
        strategy_config.respawn_lost_worker = False
        tasks = make_tasks([("a", b"a"), ("b", b"crash"), ("c", b"c")])

        report = PersistentSequential(fake_converter, config=strategy_config).run(tasks)

        assert report.results[1].category == FailureCategory.CHANNEL_ERROR
        assert report.results[2].category == FailureCategory.WORKER_UNAVAILABLE
        assert report.workers_spawned == 1

    def test_timeout_then_recovery(self, make_tasks, strategy_config):
        strategy_config.dispatch = DispatchConfig(timeout=5.0)
        tasks = make_tasks([("slow", b"sleep:60"), ("fast", b"fast")])

        report = PersistentSequential(fake_converter, config=strategy_config).run(tasks)

        assert report.results[0].category == FailureCategory.TIMEOUT
        assert report.results[1].is_success()
        assert report.workers_spawned == 2
        assert all(not w.is_alive() for w in report.workers)

    def test_empty_batch(self, strategy_config):
        report = PersistentSequential(fake_converter, config=strategy_config).run([])

        assert report.results == []
        assert report.workers_spawned == 0


@pytest.mark.slow
class TestOneShotPerTask:
    """Тесты стратегии с отдельным воркером на задачу."""

    def test_worker_per_task(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"b"), ("c", b"c")])

        report = OneShotPerTask(fake_converter, config=strategy_config).run(tasks)

        assert [r.task_id for r in report.results] == [t.id for t in tasks]
        assert report.succeeded == 3
        assert report.workers_spawned == 3
        assert {r.worker_id for r in report.results} == {w.id for w in report.workers}

        for worker in report.workers:
            assert worker.is_terminated()
            assert not worker.is_alive()
            assert worker.state_history[-2:] == [WorkerState.EXITING, WorkerState.TERMINATED]

    def test_distinct_processes(self, make_tasks, strategy_config):
        tasks = make_tasks([(name, b"x") for name in "abc"])

        OneShotPerTask(pid_converter, config=strategy_config).run(tasks)

        pids = set()
        for task in tasks:
            with open(task.output_path, "rb") as f:
                pids.add(f.read())
        assert len(pids) == 3
        assert str(os.getpid()).encode() not in pids

    def test_results_follow_input_order(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"sleep:1.5"), ("b", b"sleep:0"), ("c", b"sleep:0.5")])

        report = OneShotPerTask(fake_converter, config=strategy_config).run(tasks)

        assert [r.task_id for r in report.results] == [t.id for t in tasks]
        assert [r.metadata['output_path'] for r in report.results] == [t.output_path for t in tasks]

    def test_failures_are_isolated(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"crash"), ("c", b"corrupt")])

        report = OneShotPerTask(fake_converter, config=strategy_config).run(tasks)

        assert report.results[0].is_success()
        assert report.results[1].category == FailureCategory.CHANNEL_ERROR
        assert report.results[2].category == FailureCategory.CONVERSION_ERROR
        assert all(not w.is_alive() for w in report.workers)

    def test_live_workers_bounded(self, make_tasks, strategy_config, mocker):
        """Одновременно живых воркеров не больше max_concurrency."""
        strategy_config.max_concurrency = 2
        tasks = make_tasks([(f"t{i}", b"sleep:1") for i in range(6)])

        live_counts = []
        original_spawn = WorkerManager.spawn_worker

        def counting_spawn(manager):
            worker = original_spawn(manager)
            live_counts.append(sum(1 for w in manager.get_workers() if w.is_alive()))
            return worker

        mocker.patch.object(WorkerManager, "spawn_worker", counting_spawn)

        report = OneShotPerTask(fake_converter, config=strategy_config).run(tasks)

        assert report.succeeded == 6
        assert report.workers_spawned == 6
        assert len(live_counts) == 6
        assert max(live_counts) <= 2

    def test_spawn_failure(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a")])

        report = OneShotPerTask(lambda data, options: data, config=strategy_config).run(tasks)

        assert report.results[0].category == FailureCategory.WORKER_UNAVAILABLE

    def test_empty_batch(self, strategy_config):
        report = OneShotPerTask(fake_converter, config=strategy_config).run([])

        assert report.results == []
        assert report.workers_spawned == 0


class TestInProcessStrategies:
    """Тесты стратегий без воркер-процессов."""

    @pytest.mark.parametrize("strategy_cls", [InProcessSequential, InProcessParallel])
    def test_batch(self, strategy_cls, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"a"), ("b", b"corrupt"), ("c", b"c")])

        report = strategy_cls(fake_converter, config=strategy_config).run(tasks)

        assert [r.task_id for r in report.results] == [t.id for t in tasks]
        assert [r.status for r in report.results] == [TaskStatus.SUCCESS, TaskStatus.FAILURE, TaskStatus.SUCCESS]
        assert report.workers_spawned == 0
        assert report.elapsed > 0

    def test_parallel_keeps_order(self, make_tasks, strategy_config):
        tasks = make_tasks([("a", b"sleep:0.6"), ("b", b"sleep:0"), ("c", b"sleep:0.3")])

        report = InProcessParallel(fake_converter, config=strategy_config).run(tasks)

        assert [r.metadata['output_path'] for r in report.results] == [t.output_path for t in tasks]

    def test_default_converter(self, sample_png, tmp_path):
        tasks = [Task(input_path=str(sample_png), output_path=str(tmp_path / f"png-{i}.jpg")) for i in range(2)]

        report = InProcessSequential().run(tasks)

        assert report.succeeded == 2
        for task in tasks:
            with open(task.output_path, "rb") as f:
                assert f.read(2) == b"\xff\xd8"

    def test_missing_input(self, tmp_path):
        task = Task(input_path=str(tmp_path / "missing.heic"), output_path=str(tmp_path / "x.jpg"))

        report = InProcessSequential(fake_converter).run([task])

        assert report.results[0].category == FailureCategory.READ_ERROR

    def test_parallel_respects_max_concurrency(self, make_tasks, strategy_config):
        """С явным max_concurrency потоков конвертации не больше лимита."""
        strategy_config.max_concurrency = 2
        tasks = make_tasks([(f"t{i}", b"x") for i in range(6)])
        converter = ConcurrencyTracker(delay=0.3)

        report = InProcessParallel(converter, config=strategy_config).run(tasks)

        assert report.succeeded == 6
        assert converter.peak <= 2

    def test_parallel_launches_all_tasks_by_default(self, make_tasks):
        """Без лимита все задачи выполняются одновременно."""
        tasks = make_tasks([(f"t{i}", b"x") for i in range(8)])
        barrier = threading.Barrier(len(tasks), timeout=10)

        def converter(data, options):
            barrier.wait()
            return data

        report = InProcessParallel(converter).run(tasks)

        assert report.succeeded == 8


class TestValidation:
    """Тесты проверки пакета и фабрики стратегий."""

    def test_duplicate_task_ids(self, tmp_path):
        tasks = [
            Task(input_path="a.heic", output_path=str(tmp_path / "a.jpg"), id="same"),
            Task(input_path="a.heic", output_path=str(tmp_path / "b.jpg"), id="same"),
        ]

        with pytest.raises(ValidationError):
            InProcessSequential(fake_converter).run(tasks)

    def test_duplicate_outputs(self, tmp_path):
        tasks = [
            Task(input_path="a.heic", output_path=str(tmp_path / "a.jpg")),
            Task(input_path="b.heic", output_path=str(tmp_path / "sub" / ".." / "a.jpg")),
        ]

        with pytest.raises(ValidationError):
            OneShotPerTask(fake_converter).run(tasks)

    def test_create_strategy(self):
        strategy = create_strategy("persistent_sequential", fake_converter)
        assert isinstance(strategy, PersistentSequential)

        with pytest.raises(ValidationError):
            create_strategy("round_robin")

    def test_concurrency_bound(self):
        assert StrategyConfig(max_concurrency=4).concurrency_for(100) == 4
        assert StrategyConfig(max_concurrency=4).concurrency_for(2) == 2
        assert StrategyConfig().concurrency_for(1) == 1
