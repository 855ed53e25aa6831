"""
Исключения для пула исполнителей.
"""

from typing import Any, Optional


class JobPoolError(Exception):
    """Базовое исключение для пула исполнителей."""
    pass


class InvalidArgumentError(JobPoolError, ValueError):
    """Некорректный аргумент при отправке задачи."""
    pass


class ProtocolError(JobPoolError):
    """Некорректное или неизвестное сообщение."""
    pass


class UnknownJobError(JobPoolError):
    """Исполнитель получил задачу, которая не зарегистрирована."""

    def __init__(self, job_name: str):
        super().__init__(f"No job registered under name '{job_name}'")
        self.job_name = job_name


class JobError(JobPoolError):
    """Обработчик задачи сообщил об ошибке через fail()."""

    def __init__(self, error: Any, job_name: Optional[str] = None):
        super().__init__(str(error))
        self.error = error
        self.job_name = job_name


class FaultError(JobPoolError):
    """Сбой исполнителя на уровне транспорта."""

    def __init__(self, unit_id: str, reason: Optional[str] = None):
        message = f"Execution unit {unit_id} faulted"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.unit_id = unit_id
        self.reason = reason


class UnitNotFoundError(JobPoolError):
    """Исполнитель с таким ID отсутствует в пуле."""
    pass


class DuplicateUnitIdError(JobPoolError):
    """В пуле несколько исполнителей с одинаковым ID."""
    pass


class UnitError(JobPoolError):
    """Ошибка транспорта исполнителя."""
    pass


class ShutdownError(JobPoolError):
    """Ошибка при завершении работы."""
    pass


class ConfigurationError(JobPoolError):
    """Ошибка конфигурации."""
    pass
