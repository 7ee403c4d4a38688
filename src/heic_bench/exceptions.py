"""
Исключения для бенчмарка конвертации.

Исключения уровня задачи несут атрибут ``category``, совпадающий со
значением ``FailureCategory`` в результате задачи.
"""


class HeicBenchError(Exception):
    """Базовое исключение пакета."""
    category = "error"


class WorkerError(HeicBenchError):
    """Ошибка воркера."""
    pass


class WorkerUnavailableError(WorkerError):
    """Воркер не может принять задачу (завершен, занят или канал закрыт)."""
    category = "worker_unavailable"


class WorkerStateError(WorkerError):
    """Недопустимый переход состояния воркера."""
    pass


class ChannelError(HeicBenchError):
    """Канал воркера оборвался (аварийное завершение процесса)."""
    category = "channel_error"


class DispatchTimeoutError(HeicBenchError):
    """Ответ воркера не пришел до дедлайна."""
    category = "timeout"


class ConversionError(HeicBenchError):
    """Ошибка конвертации изображения."""
    category = "conversion_error"


class ReadError(HeicBenchError):
    """Ошибка чтения входного файла."""
    category = "read_error"


class WriteError(HeicBenchError):
    """Ошибка записи результата."""
    category = "write_error"


class ConfigurationError(HeicBenchError):
    """Ошибка конфигурации."""
    pass


class ValidationError(HeicBenchError):
    """Ошибка валидации."""
    pass
