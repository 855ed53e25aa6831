"""
Поэтапное завершение работы пула исполнителей.
"""

import functools
import threading
import time
from typing import Callable, List, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ..utils.logger import get_logger
from ..exceptions import ShutdownError


logger = get_logger(__name__)


class ShutdownPhase(Enum):
    """Фазы завершения работы."""
    INITIATED = "initiated"
    STOPPING_NEW_JOBS = "stopping_new_jobs"
    WAITING_FOR_JOBS = "waiting_for_jobs"
    TERMINATING_UNITS = "terminating_units"
    COMPLETED = "completed"


@dataclass
class ShutdownConfig:
    """Параметры завершения работы."""
    timeout: float = 5.0  # секунды на выполняемые задачи
    wait_for_jobs: bool = True


@dataclass
class ShutdownStatus:
    """Ход завершения работы."""
    phase: ShutdownPhase
    timeout: float
    start_time: datetime = field(default_factory=datetime.now)
    jobs_pending_at_timeout: int = 0
    cleanup_callbacks_executed: int = 0
    error_count: int = 0
    completed: bool = False
    error: Optional[Exception] = None

    def elapsed(self) -> float:
        return (datetime.now() - self.start_time).total_seconds()


class GracefulShutdown:
    """
    Координатор завершения работы.

    Менеджер передает в ``execute_shutdown`` три шага: прекращение приема
    задач, счетчик выполняемых задач и завершение исполнителей. Ошибка шага
    записывается в статус и не прерывает следующие шаги. Cleanup callback'и
    выполняются последними, после завершения исполнителей.
    """

    def __init__(self, config: Optional[ShutdownConfig] = None):
        self.config = config or ShutdownConfig()
        self._initiated = threading.Event()
        self._status: Optional[ShutdownStatus] = None
        self._lock = threading.Lock()
        self._cleanup: List[Callable[[], None]] = []

    def initiate_shutdown(self) -> ShutdownStatus:
        with self._lock:
            if self._status is not None and not self._status.completed:
                logger.warning("Shutdown already in progress")
                return self._status

            self._initiated.set()
            self._status = ShutdownStatus(phase=ShutdownPhase.INITIATED, timeout=self.config.timeout)
            logger.info(f"Shutdown initiated (timeout {self.config.timeout}s)")
            return self._status

    def execute_shutdown(
        self,
        stop_new_jobs_callback: Optional[Callable[[], None]] = None,
        get_pending_jobs_callback: Optional[Callable[[], int]] = None,
        terminate_units_callback: Optional[Callable[[], None]] = None
    ) -> ShutdownStatus:
        """
        Выполнение фаз завершения.

        Args:
            stop_new_jobs_callback: Прекращение приема задач и сброс очереди
            get_pending_jobs_callback: Количество выполняемых задач
            terminate_units_callback: Завершение исполнителей

        Returns:
            Итоговый статус
        """
        status = self._status
        if status is None:
            raise ShutdownError("Shutdown not initiated")

        wait = None
        if self.config.wait_for_jobs and get_pending_jobs_callback:
            wait = functools.partial(self._wait_for_jobs, get_pending_jobs_callback)

        steps = (
            (ShutdownPhase.STOPPING_NEW_JOBS, stop_new_jobs_callback),
            (ShutdownPhase.WAITING_FOR_JOBS, wait),
            (ShutdownPhase.TERMINATING_UNITS, terminate_units_callback),
        )

        try:
            for phase, step in steps:
                if step is None:
                    continue
                status.phase = phase
                logger.info(f"Shutdown phase: {phase.value}")
                self._run(step, phase.value)

            for callback in self._cleanup:
                if self._run(callback, "cleanup"):
                    status.cleanup_callbacks_executed += 1

            status.phase = ShutdownPhase.COMPLETED
            status.completed = True
            logger.info(f"Shutdown completed in {status.elapsed():.2f}s")

        except Exception as e:
            status.error = e
            status.error_count += 1
            logger.error(f"Shutdown aborted: {e}")

        return status

    def _run(self, step: Callable[[], None], label: str) -> bool:
        try:
            step()
            return True
        except Exception as e:
            self._status.error_count += 1
            logger.error(f"Shutdown step '{label}' failed: {e}")
            return False

    def _wait_for_jobs(self, pending: Callable[[], int]):
        deadline = time.monotonic() + self.config.timeout
        count = pending()
        while count > 0 and time.monotonic() < deadline:
            time.sleep(0.05)
            count = pending()

        if count:
            self._status.jobs_pending_at_timeout = count
            logger.warning(f"{count} jobs still running after {self.config.timeout}s")
        else:
            logger.info("No jobs in flight")

    def add_cleanup_callback(self, callback: Callable[[], None]):
        """Callback, выполняемый после завершения исполнителей."""
        self._cleanup.append(callback)

    def is_shutdown_initiated(self) -> bool:
        return self._initiated.is_set()

    def is_shutdown_completed(self) -> bool:
        return bool(self._status and self._status.completed)

    def get_status(self) -> Optional[ShutdownStatus]:
        return self._status

    def __repr__(self) -> str:
        phase = self._status.phase.value if self._status else "not_initiated"
        return f"GracefulShutdown(phase={phase})"
