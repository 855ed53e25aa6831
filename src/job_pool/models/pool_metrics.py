"""
Метрики пула исполнителей.
"""

from typing import Dict, Optional
from dataclasses import dataclass
from datetime import datetime


@dataclass
class PoolMetrics:
    """Метрики пула исполнителей."""

    # Задачи
    total_jobs_submitted: int = 0
    total_jobs_completed: int = 0
    total_jobs_failed: int = 0
    total_jobs_faulted: int = 0

    # Время выполнения
    total_execution_time: float = 0.0
    average_execution_time: float = 0.0
    max_execution_time: float = 0.0
    min_execution_time: float = float('inf')

    # Очередь
    current_queue_size: int = 0
    max_queue_size: int = 0

    # Исполнители и протокол
    total_units_replaced: int = 0
    total_protocol_errors: int = 0
    total_spawn_failures: int = 0

    pool_start_time: Optional[datetime] = None
    pool_stop_time: Optional[datetime] = None

    def start_pool(self):
        """Запуск пула."""
        self.pool_start_time = datetime.now()

    def stop_pool(self):
        """Остановка пула."""
        self.pool_stop_time = datetime.now()

    def update_job_completion(self, execution_time: float, success: bool = True):
        """Обновление после завершения задачи."""
        if success:
            self.total_jobs_completed += 1
        else:
            self.total_jobs_failed += 1

        self.total_execution_time += execution_time
        self.max_execution_time = max(self.max_execution_time, execution_time)
        self.min_execution_time = min(self.min_execution_time, execution_time)
        finished = self.total_jobs_completed + self.total_jobs_failed
        self.average_execution_time = self.total_execution_time / finished

    def update_queue_size(self, size: int):
        """Обновление размера очереди."""
        self.current_queue_size = size
        self.max_queue_size = max(self.max_queue_size, size)

    def get_success_rate(self) -> float:
        finished = self.total_jobs_completed + self.total_jobs_failed
        if finished == 0:
            return 0.0
        return (self.total_jobs_completed / finished) * 100

    def get_uptime(self) -> float:
        """Получение времени работы пула."""
        if not self.pool_start_time:
            return 0.0
        end = self.pool_stop_time or datetime.now()
        return (end - self.pool_start_time).total_seconds()

    def to_dict(self) -> Dict:
        """Преобразование в словарь."""
        return {
            'total_jobs_submitted': self.total_jobs_submitted,
            'total_jobs_completed': self.total_jobs_completed,
            'total_jobs_failed': self.total_jobs_failed,
            'total_jobs_faulted': self.total_jobs_faulted,
            'total_execution_time': self.total_execution_time,
            'average_execution_time': self.average_execution_time,
            'max_execution_time': self.max_execution_time,
            'min_execution_time': self.min_execution_time if self.min_execution_time != float('inf') else 0,
            'current_queue_size': self.current_queue_size,
            'max_queue_size': self.max_queue_size,
            'total_units_replaced': self.total_units_replaced,
            'total_protocol_errors': self.total_protocol_errors,
            'total_spawn_failures': self.total_spawn_failures,
            'success_rate': self.get_success_rate(),
            'uptime': self.get_uptime()
        }
