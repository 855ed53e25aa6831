"""
Исполнитель на основе отдельного процесса.
"""

import multiprocessing
import threading
from typing import Any, Dict, Optional

import psutil

from .base import ExecutionUnit, Location, resolve_location
from ..core.job_registry import JobRegistry
from ..utils.logger import get_logger
from ..exceptions import UnitError


logger = get_logger(__name__)


def _process_main(location: Location, conn):
    """Точка входа дочернего процесса."""
    send_lock = threading.Lock()

    def post(message):
        with send_lock:
            conn.send(message)

    registry = JobRegistry(post=post)
    setup = resolve_location(location)
    setup(registry)
    registry.announce_ready()

    while True:
        try:
            message = conn.recv()
        except EOFError:
            break
        if message is None:
            break
        # Исключение завершает процесс, родитель увидит это как сбой
        registry.on_job_request(message)


class ProcessUnit(ExecutionUnit):
    """
    Исполнитель в отдельном процессе.

    Сообщения передаются через ``multiprocessing.Pipe``. Поток-читатель в
    родительском процессе пересылает их менеджеру; неожиданный конец канала
    означает сбой исполнителя. Для методов запуска ``spawn``/``forkserver``
    расположение задач должно быть строкой или функцией уровня модуля.
    """

    def __init__(
        self,
        location: Location,
        unit_id: str,
        start_method: Optional[str] = None,
        join_timeout: float = 2.0
    ):
        super().__init__(location, unit_id)
        self.join_timeout = join_timeout
        context = multiprocessing.get_context(start_method)
        self._conn, child_conn = context.Pipe()
        self._child_conn = child_conn
        self._process = context.Process(
            target=_process_main,
            args=(location, child_conn),
            name=f"unit-{unit_id}",
            daemon=True
        )
        self._send_lock = threading.Lock()
        self._reader = threading.Thread(
            target=self._read_loop,
            name=f"unit-reader-{unit_id}",
            daemon=True
        )

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid

    def start(self):
        self._process.start()
        # Конец канала ребенка в родителе закрывается, чтобы получить EOF при его выходе
        self._child_conn.close()
        self._reader.start()
        logger.debug(f"Process unit {self.unit_id} started with pid {self.pid}")

    def send(self, message: Dict[str, Any]):
        if self.is_terminated():
            raise UnitError(f"Unit {self.unit_id} is terminated")
        try:
            with self._send_lock:
                self._conn.send(message)
        except (OSError, ValueError) as e:
            raise UnitError(f"Cannot send to unit {self.unit_id}: {e}") from e

    def terminate(self):
        self._terminated.set()
        try:
            with self._send_lock:
                self._conn.send(None)
        except (OSError, ValueError):
            pass

        self._process.join(timeout=self.join_timeout)
        if self._process.is_alive():
            logger.warning(f"Unit {self.unit_id} did not exit in {self.join_timeout}s, killing")
            self._process.terminate()
            self._process.join(timeout=self.join_timeout)

        if self._reader.is_alive():
            self._reader.join(timeout=self.join_timeout)
        self._conn.close()
        logger.debug(f"Process unit {self.unit_id} terminated")

    def resource_usage(self) -> Dict[str, Any]:
        """Потребление ресурсов дочерним процессом."""
        if self.pid is None:
            return {}
        try:
            process = psutil.Process(self.pid)
            with process.oneshot():
                memory = process.memory_info()
                return {
                    'pid': self.pid,
                    'rss_mb': memory.rss / (1024 * 1024),
                    'cpu_percent': process.cpu_percent(interval=None),
                    'num_threads': process.num_threads()
                }
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return {'pid': self.pid}

    def _read_loop(self):
        """Цикл чтения сообщений от дочернего процесса."""
        while True:
            try:
                message = self._conn.recv()
            except (EOFError, OSError):
                break
            self._emit_message(message)

        if not self.is_terminated():
            self._process.join(timeout=self.join_timeout)
            self._emit_fault(f"process exited with code {self._process.exitcode}")
