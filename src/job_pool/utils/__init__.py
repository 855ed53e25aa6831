"""
Утилиты для пула исполнителей.
"""

from .logger import get_logger, setup_logging, get_log_metrics, get_log_counts_by_logger, reset_log_metrics
from .monitoring import HealthChecker, collect_system_metrics

__all__ = [
    "get_logger",
    "setup_logging",
    "get_log_metrics",
    "get_log_counts_by_logger",
    "reset_log_metrics",
    "HealthChecker",
    "collect_system_metrics"
]
