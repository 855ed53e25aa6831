"""
Система мониторинга для пула исполнителей.
"""

import psutil
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field
from datetime import datetime

from ..models.unit import UnitStatus
from ..utils.logger import get_logger


logger = get_logger(__name__)


@dataclass
class SystemMetrics:
    """Метрики системы."""
    cpu_percent: float = 0.0
    memory_percent: float = 0.0
    memory_used_mb: float = 0.0
    memory_available_mb: float = 0.0
    cpu_count: int = 0
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cpu_percent': self.cpu_percent,
            'memory_percent': self.memory_percent,
            'memory_used_mb': self.memory_used_mb,
            'memory_available_mb': self.memory_available_mb,
            'cpu_count': self.cpu_count,
            'timestamp': self.timestamp.isoformat()
        }


@dataclass
class HealthStatus:
    """Статус здоровья пула."""
    is_healthy: bool = True
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)


def collect_system_metrics() -> SystemMetrics:
    """Сбор системных метрик."""
    try:
        memory = psutil.virtual_memory()
        return SystemMetrics(
            cpu_percent=psutil.cpu_percent(interval=None),
            memory_percent=memory.percent,
            memory_used_mb=memory.used / (1024 * 1024),
            memory_available_mb=memory.available / (1024 * 1024),
            cpu_count=psutil.cpu_count() or 0
        )
    except Exception as e:
        logger.error(f"Error collecting system metrics: {e}")
        return SystemMetrics()


class HealthChecker:
    """
    Проверка здоровья пула.

    Только наблюдение: исполнитель, который долго не сообщает о готовности,
    попадает в предупреждения, но менеджер его не перезапускает.
    """

    def __init__(
        self,
        manager,
        startup_warning_seconds: float = 30.0,
        queue_size_threshold: int = 100,
        memory_threshold: float = 90.0
    ):
        self.manager = manager
        self.startup_warning_seconds = startup_warning_seconds
        self.queue_size_threshold = queue_size_threshold
        self.memory_threshold = memory_threshold

    def check_health(self, system_metrics: Optional[SystemMetrics] = None) -> HealthStatus:
        """Выполнение проверок здоровья."""
        issues = []
        warnings = []
        now = datetime.now()

        for unit in self.manager.get_units():
            if unit.status == UnitStatus.ERROR:
                issues.append(f"Unit {unit.id} is in error state")
            elif unit.status == UnitStatus.STARTING:
                waiting = (now - unit.created_at).total_seconds()
                if waiting > self.startup_warning_seconds:
                    warnings.append(f"Unit {unit.id} has not reported ready for {waiting:.0f}s")

        queue_size = self.manager.get_queue_size()
        if queue_size > self.queue_size_threshold:
            warnings.append(f"High queue size: {queue_size}")

        if system_metrics is None:
            system_metrics = collect_system_metrics()
        if system_metrics.memory_percent > self.memory_threshold:
            warnings.append(f"High memory usage: {system_metrics.memory_percent:.1f}%")

        for message in warnings:
            logger.warning(message)

        return HealthStatus(
            is_healthy=len(issues) == 0,
            issues=issues,
            warnings=warnings
        )
