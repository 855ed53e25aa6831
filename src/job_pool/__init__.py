"""
Пул исполнителей с очередью именованных задач, прогрессом и самовосстановлением.

Основные компоненты:
- PoolManager: пул фиксированного размера, очередь FIFO и маршрутизация сообщений
- JobRegistry: реестр обработчиков задач на стороне исполнителя
- JobFuture: future задачи с каналом прогресса
- ThreadUnit / ProcessUnit: исполнители на потоках и процессах
"""

from .core.pool_manager import PoolManager
from .core.job_registry import JobRegistry
from .core.graceful_shutdown import ShutdownConfig
from .models.job import JobFuture
from .models.unit import UnitRecord, UnitStatus
from .units import ExecutionUnit, ThreadUnit, ProcessUnit
from .utils.config import Config, load_config, load_config_from_env
from .utils.logger import get_logger, setup_logging
from .exceptions import (
    JobPoolError,
    InvalidArgumentError,
    ProtocolError,
    UnknownJobError,
    JobError,
    FaultError,
    UnitNotFoundError,
    DuplicateUnitIdError,
    UnitError,
    ShutdownError,
    ConfigurationError
)

__version__ = "1.0.0"

__all__ = [
    "PoolManager",
    "JobRegistry",
    "ShutdownConfig",
    "JobFuture",
    "UnitRecord",
    "UnitStatus",
    "ExecutionUnit",
    "ThreadUnit",
    "ProcessUnit",
    "Config",
    "load_config",
    "load_config_from_env",
    "get_logger",
    "setup_logging",
    "JobPoolError",
    "InvalidArgumentError",
    "ProtocolError",
    "UnknownJobError",
    "JobError",
    "FaultError",
    "UnitNotFoundError",
    "DuplicateUnitIdError",
    "UnitError",
    "ShutdownError",
    "ConfigurationError"
]
