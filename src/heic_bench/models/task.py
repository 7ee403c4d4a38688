"""
Модели задач конвертации.
"""

import os
import uuid
from enum import Enum
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field
from datetime import datetime


PathLike = Union[str, os.PathLike]


class TaskStatus(Enum):
    """Статусы результата задачи."""
    SUCCESS = "success"
    FAILURE = "failure"


class FailureCategory(Enum):
    """Категории ошибок."""
    WORKER_UNAVAILABLE = "worker_unavailable"
    CONVERSION_ERROR = "conversion_error"
    READ_ERROR = "read_error"
    WRITE_ERROR = "write_error"
    CHANNEL_ERROR = "channel_error"
    TIMEOUT = "timeout"

    @classmethod
    def from_exception(cls, error: Exception) -> "FailureCategory":
        """Категория по исключению; неизвестные считаются ошибкой конвертации."""
        try:
            return cls(getattr(error, "category", None))
        except ValueError:
            return cls.CONVERSION_ERROR


@dataclass(frozen=True)
class Task:
    """Единица работы: входной файл и путь для результата."""

    input_path: PathLike
    output_path: PathLike
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = ""

    def __post_init__(self):
        """Валидация после инициализации."""
        if not self.input_path:
            raise ValueError("Task input_path is required")
        if not self.output_path:
            raise ValueError("Task output_path is required")


@dataclass
class TaskResult:
    """Результат выполнения задачи."""

    task_id: str
    status: TaskStatus
    category: Optional[FailureCategory] = None
    error: Optional[str] = None
    execution_time: Optional[float] = None
    worker_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    completed_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def success(cls, task_id: str, metadata: Optional[Dict[str, Any]] = None, **kwargs) -> "TaskResult":
        return cls(task_id=task_id, status=TaskStatus.SUCCESS, metadata=metadata or {}, **kwargs)

    @classmethod
    def failure(cls, task_id: str, category: FailureCategory, error: str, **kwargs) -> "TaskResult":
        return cls(task_id=task_id, status=TaskStatus.FAILURE, category=category, error=error, **kwargs)

    def is_success(self) -> bool:
        """Проверка успешности выполнения."""
        return self.status == TaskStatus.SUCCESS

    def is_failure(self) -> bool:
        """Проверка неудачного выполнения."""
        return self.status == TaskStatus.FAILURE
