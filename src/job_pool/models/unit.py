"""
Модели исполнителей для пула.
"""

from enum import Enum
from typing import Optional, Any
from dataclasses import dataclass, field
from datetime import datetime


class UnitStatus(Enum):
    """Статусы исполнителей."""
    STARTING = "starting"
    IDLE = "idle"
    BUSY = "busy"
    ERROR = "error"


@dataclass
class UnitRecord:
    """Запись об исполнителе в пуле."""

    id: str
    handle: Any
    status: UnitStatus = UnitStatus.STARTING
    created_at: datetime = field(default_factory=datetime.now)
    ready_at: Optional[datetime] = None
    jobs_completed: int = 0
    jobs_failed: int = 0

    def set_idle(self):
        """Установка статуса свободен."""
        if self.ready_at is None:
            self.ready_at = datetime.now()
        self.status = UnitStatus.IDLE

    def set_busy(self):
        """Установка статуса занят."""
        self.status = UnitStatus.BUSY

    def set_error(self):
        """Установка статуса ошибки."""
        self.status = UnitStatus.ERROR

    def is_available(self) -> bool:
        """Проверка доступности исполнителя."""
        return self.status == UnitStatus.IDLE

    def get_uptime(self) -> float:
        """Время с момента готовности исполнителя."""
        if self.ready_at is None:
            return 0.0
        return (datetime.now() - self.ready_at).total_seconds()
