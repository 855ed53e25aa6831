"""
Основные компоненты пула исполнителей.
"""

from .pool_manager import PoolManager
from .job_registry import JobRegistry
from .graceful_shutdown import GracefulShutdown, ShutdownConfig

__all__ = [
    "PoolManager",
    "JobRegistry",
    "GracefulShutdown",
    "ShutdownConfig"
]
