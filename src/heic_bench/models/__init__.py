"""
Модели данных бенчмарка.
"""

from .task import Task, TaskResult, TaskStatus, FailureCategory
from .worker import Worker, WorkerState, WorkerMetrics
from .batch_report import BatchReport

__all__ = [
    "Task",
    "TaskResult",
    "TaskStatus",
    "FailureCategory",
    "Worker",
    "WorkerState",
    "WorkerMetrics",
    "BatchReport"
]
