"""
Модели задач для пула исполнителей.
"""

import threading
import uuid
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
from datetime import datetime

from ..utils.logger import get_logger


logger = get_logger(__name__)


class JobFuture(Future):
    """
    Результат отправленной задачи.

    Обычный ``concurrent.futures.Future`` с дополнительным каналом прогресса:
    подписчики получают долю выполнения в диапазоне [0, 1] ноль или более раз
    до завершения. Отмена не поддерживается - future сразу переводится в
    состояние RUNNING.
    """

    def __init__(self, job_name: str, params: Optional[Dict[str, Any]] = None):
        super().__init__()
        self.id = str(uuid.uuid4())
        self.job_name = job_name
        self.params = params if params is not None else {}
        self.unit_id: Optional[str] = None
        self.progress: Optional[float] = None
        self.submitted_at = datetime.now()
        self.started_at: Optional[datetime] = None
        self._progress_callbacks: List[Callable[[float], None]] = []
        self._progress_lock = threading.Lock()
        self.set_running_or_notify_cancel()

    def add_progress_callback(self, fn: Callable[[float], None]):
        """
        Подписка на прогресс задачи.

        Callback вызывается в потоке диспетчера менеджера, поэтому он не
        должен блокироваться надолго.
        """
        with self._progress_lock:
            self._progress_callbacks.append(fn)

    def notify_progress(self, ratio: float):
        """Передача прогресса подписчикам."""
        with self._progress_lock:
            self.progress = ratio
            callbacks = list(self._progress_callbacks)

        for callback in callbacks:
            try:
                callback(ratio)
            except Exception:
                logger.exception(f"Progress callback {callback} raised for job {self.id}")

    def __repr__(self) -> str:
        return f"JobFuture(id={self.id}, job={self.job_name}, state={self._state})"


@dataclass
class JobRecord:
    """Задача, выполняемая исполнителем в данный момент."""

    unit_id: str
    job_name: str
    future: JobFuture
    on_progress: Callable[[float], None]
    on_resolve: Callable[[Any], None]
    on_reject: Callable[[BaseException], None]
    started_at: datetime = field(default_factory=datetime.now)

    def get_duration(self) -> float:
        return (datetime.now() - self.started_at).total_seconds()
