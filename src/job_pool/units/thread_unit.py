"""
Исполнитель на основе потока.
"""

import queue
import threading
from typing import Any, Dict

from .base import ExecutionUnit, Location, resolve_location
from ..core.job_registry import JobRegistry
from ..utils.logger import get_logger
from ..exceptions import UnitError


logger = get_logger(__name__)


# Сигнал остановки для цикла исполнителя
_STOP = object()


class ThreadUnit(ExecutionUnit):
    """Исполнитель, выполняющий задачи в отдельном потоке."""

    def __init__(self, location: Location, unit_id: str):
        super().__init__(location, unit_id)
        self._inbox: queue.Queue = queue.Queue()
        self.registry = JobRegistry(post=self._emit_message)
        self._thread = threading.Thread(
            target=self._run,
            name=f"unit-{unit_id}",
            daemon=True
        )

    def start(self):
        self._thread.start()
        logger.debug(f"Thread unit {self.unit_id} started")

    def send(self, message: Dict[str, Any]):
        if self.is_terminated():
            raise UnitError(f"Unit {self.unit_id} is terminated")
        self._inbox.put(message)

    def terminate(self):
        self._terminated.set()
        self._inbox.put(_STOP)
        logger.debug(f"Thread unit {self.unit_id} terminated")

    def join(self, timeout: float = None):
        self._thread.join(timeout=timeout)

    def _run(self):
        """Основной цикл исполнителя."""
        try:
            setup = resolve_location(self.location)
            setup(self.registry)
            self.registry.announce_ready()

            while not self.is_terminated():
                message = self._inbox.get()
                if message is _STOP:
                    break
                self.registry.on_job_request(message)

        except Exception as e:
            logger.error(f"Unit {self.unit_id} crashed: {e}", exc_info=True)
            self._emit_fault(f"{type(e).__name__}: {e}")
