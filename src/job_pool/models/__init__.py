"""
Модели данных для пула исполнителей.
"""

from .job import JobFuture, JobRecord
from .unit import UnitRecord, UnitStatus
from .pool_metrics import PoolMetrics

__all__ = [
    "JobFuture",
    "JobRecord",
    "UnitRecord",
    "UnitStatus",
    "PoolMetrics"
]
