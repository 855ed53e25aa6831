"""
Менеджер пула исполнителей.

Общий порядок работы:

1. Вызывающий отправляет задачу и сразу получает ``JobFuture``.
2. Менеджер ищет свободного исполнителя или ставит запрос в очередь.
3. Исполнителю уходит сообщение с именем задачи и параметрами.
4. Прогресс и результат приходят сообщениями и завершают future.
5. Освободившийся исполнитель сразу получает следующий запрос из очереди.

Все изменения пула, очереди и таблицы выполняемых задач происходят в одном
потоке-диспетчере, который разбирает собственный почтовый ящик. Публичные
методы и callback'и исполнителей только кладут события в этот ящик.
"""

import queue
import threading
import time
from collections import deque
from concurrent.futures import Future
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from .graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownStatus
from ..models.job import JobFuture, JobRecord
from ..models.unit import UnitRecord, UnitStatus
from ..models.pool_metrics import PoolMetrics
from ..protocol import (
    ReadyMessage,
    ProgressMessage,
    CompleteMessage,
    ErrorMessage,
    JobRequest,
    UNKNOWN_JOB_KIND,
    decode_message,
    encode_message,
)
from ..units.base import ExecutionUnit, Location
from ..utils.logger import get_logger, setup_logging
from ..exceptions import (
    JobPoolError,
    InvalidArgumentError,
    ProtocolError,
    UnknownJobError,
    JobError,
    FaultError,
    UnitNotFoundError,
    DuplicateUnitIdError,
    ShutdownError,
    UnitError,
)


logger = get_logger(__name__)


UnitFactory = Callable[[Location, str], ExecutionUnit]

# Суффикс ID исполнителя, созданного взамен сбойного
REPLACED_SUFFIX = ".replaced"

# Сигнал остановки диспетчера
_STOP = object()


class PoolManager:
    """Пул исполнителей фиксированного размера с очередью задач и самовосстановлением."""

    def __init__(
        self,
        unit_factory: UnitFactory,
        pool_size: int = 2,
        location: Location = None,
        shutdown_config: Optional[ShutdownConfig] = None
    ):
        if pool_size < 1:
            raise InvalidArgumentError(f"pool_size must be >= 1, got {pool_size}")

        self.pool_size = pool_size
        self.location = location
        self._unit_factory = unit_factory

        self._pool: List[UnitRecord] = []
        self._queue: Deque[Future] = deque()
        self._jobs: Dict[str, JobRecord] = {}
        self._retired_ids: Set[str] = set()
        self._accepting = True

        self._lock = threading.RLock()
        self._mailbox: queue.Queue = queue.Queue()
        self._metrics = PoolMetrics()

        self._graceful_shutdown = GracefulShutdown(shutdown_config)
        self._graceful_shutdown.add_cleanup_callback(self._stop_dispatcher)

        self._dispatcher = threading.Thread(
            target=self._dispatch_loop,
            name="pool-dispatcher",
            daemon=True
        )
        self._dispatcher.start()

        with self._lock:
            for index in range(pool_size):
                self._pool.append(self._spawn_unit(f"unit-{index}"))
            self._metrics.start_pool()

        logger.info(f"PoolManager started with {pool_size} units")

    @classmethod
    def from_config(
        cls,
        config,
        unit_factory: Optional[UnitFactory] = None,
        configure_logging: bool = True
    ) -> 'PoolManager':
        """
        Создание менеджера из конфигурации.

        Args:
            config: Объект ``Config``
            unit_factory: Фабрика исполнителей; по умолчанию выбирается по ``config.unit_type``
            configure_logging: Применить ``log_level``, ``log_file`` и ``enable_metrics``
                к логгеру пакета через ``setup_logging``
        """
        from ..units import UNIT_TYPES

        config.validate()
        if configure_logging:
            setup_logging(
                level=config.log_level,
                log_file=config.log_file,
                enable_metrics=config.enable_metrics
            )

        factory = unit_factory or UNIT_TYPES[config.unit_type]
        return cls(
            factory,
            pool_size=config.pool_size,
            location=config.location,
            shutdown_config=config.shutdown
        )

    # ------------------------------------------------------------------
    # Публичный API
    # ------------------------------------------------------------------

    def submit_job(self, name: str, params: Optional[Dict[str, Any]] = None) -> JobFuture:
        """
        Отправка задачи в пул.

        Args:
            name: Имя зарегистрированной задачи
            params: Сериализуемые параметры задачи

        Returns:
            Future с каналом прогресса и единственным результатом
        """
        if not name or not isinstance(name, str):
            raise InvalidArgumentError("The name of the job to execute is required")
        if not self._accepting:
            raise ShutdownError("Pool is shutting down")

        future = JobFuture(name, params if params is not None else {})
        self._mailbox.put(("submit", future))
        logger.debug(f"Job {future.id} ({name}) submitted")
        return future

    def lookup_unit(self, unit_id: str) -> UnitRecord:
        """
        Поиск исполнителя по ID.

        Raises:
            UnitNotFoundError: исполнителя нет в пуле
            DuplicateUnitIdError: ID встречается больше одного раза
        """
        with self._lock:
            matches = [unit for unit in self._pool if unit.id == unit_id]
        if len(matches) > 1:
            raise DuplicateUnitIdError(f"More than one unit has the same ID: {unit_id}")
        if not matches:
            raise UnitNotFoundError(f"No unit found with ID: {unit_id}")
        return matches[0]

    def flush(self, timeout: Optional[float] = None):
        """Ожидание обработки всех событий, поставленных в ящик до этого вызова."""
        self._call(lambda: None, timeout=timeout)

    def shutdown(self) -> ShutdownStatus:
        """
        Graceful shutdown пула.

        Новые задачи отклоняются, задачи в очереди завершаются ``ShutdownError``,
        выполняемые задачи ожидаются не дольше таймаута из конфигурации,
        затем все исполнители завершаются.
        """
        if self._graceful_shutdown.is_shutdown_initiated():
            return self._graceful_shutdown.get_status()

        logger.info("Stopping PoolManager...")
        self._graceful_shutdown.initiate_shutdown()
        status = self._graceful_shutdown.execute_shutdown(
            stop_new_jobs_callback=lambda: self._call(self._stop_accepting),
            get_pending_jobs_callback=self.get_jobs_in_flight,
            terminate_units_callback=lambda: self._call(self._terminate_units)
        )

        with self._lock:
            self._metrics.stop_pool()
        logger.info("PoolManager stopped")
        return status

    def is_running(self) -> bool:
        return self._accepting and self._dispatcher.is_alive()

    def get_units(self) -> List[UnitRecord]:
        """Получение списка исполнителей."""
        with self._lock:
            return list(self._pool)

    def get_unit_count(self) -> int:
        with self._lock:
            return len(self._pool)

    def get_queue_size(self) -> int:
        """Количество запросов, ожидающих свободного исполнителя."""
        with self._lock:
            return len(self._queue)

    def get_jobs_in_flight(self) -> int:
        with self._lock:
            return len(self._jobs)

    def get_metrics(self) -> Dict[str, Any]:
        """Получение метрик пула."""
        with self._lock:
            metrics = self._metrics.to_dict()
            metrics['pool_size'] = len(self._pool)
            metrics['current_queue_size'] = len(self._queue)
            metrics['jobs_in_flight'] = len(self._jobs)
            metrics['unit_stats'] = {
                status.value: sum(1 for unit in self._pool if unit.status == status)
                for status in UnitStatus
            }
            return metrics

    def wait_for_completion(self, timeout: Optional[float] = 30.0) -> bool:
        """
        Ожидание, пока очередь и таблица выполняемых задач опустеют.

        Args:
            timeout: Таймаут в секундах; ``None`` - ждать без ограничения

        Returns:
            True если все задачи завершены, False если таймаут
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        while True:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0.01)
            self.flush(timeout=remaining)
            with self._lock:
                if not self._queue and not self._jobs and self._mailbox.empty():
                    return True
            if deadline is not None and time.monotonic() >= deadline:
                return False
            time.sleep(0.05)

    # ------------------------------------------------------------------
    # Диспетчер
    # ------------------------------------------------------------------

    def _dispatch_loop(self):
        """Основной цикл диспетчера."""
        while True:
            event = self._mailbox.get()
            if event is _STOP:
                break

            with self._lock:
                try:
                    self._handle_event(event)
                except ProtocolError as e:
                    self._metrics.total_protocol_errors += 1
                    logger.error(f"Protocol error: {e}")
                except (UnitNotFoundError, DuplicateUnitIdError) as e:
                    logger.critical(f"Pool invariant violated: {e}", exc_info=True)
                except Exception as e:
                    logger.error(f"Error handling '{event[0]}' event: {e}", exc_info=True)

        logger.debug("Dispatcher stopped")

    def _handle_event(self, event):
        kind = event[0]
        if kind == "submit":
            self._handle_submit(event[1])
        elif kind == "message":
            self._on_unit_message(event[1], event[2])
        elif kind == "fault":
            self._on_unit_fault(event[1], event[2])
        elif kind == "call":
            fn, result = event[1], event[2]
            try:
                result.set_result(fn())
            except Exception as e:
                result.set_exception(e)
        else:
            raise JobPoolError(f"Unknown dispatcher event: {kind!r}")

    def _call(self, fn: Callable[[], Any], timeout: Optional[float] = None) -> Any:
        """Выполнение функции в потоке диспетчера."""
        if threading.current_thread() is self._dispatcher:
            return fn()
        if not self._dispatcher.is_alive():
            with self._lock:
                return fn()

        result: Future = Future()
        self._mailbox.put(("call", fn, result))
        return result.result(timeout=timeout)

    def _stop_dispatcher(self):
        self._mailbox.put(_STOP)
        if threading.current_thread() is not self._dispatcher:
            self._dispatcher.join(timeout=5.0)

    # ------------------------------------------------------------------
    # Получение исполнителя и запуск задач
    # ------------------------------------------------------------------

    def _handle_submit(self, future: JobFuture):
        if not self._accepting:
            future.set_exception(ShutdownError("Pool shut down before the job was dispatched"))
            return

        self._metrics.total_jobs_submitted += 1

        def on_acquired(acquisition: Future):
            error = acquisition.exception()
            if error is not None:
                future.set_exception(error)
                return
            # Исключения done-callback'а concurrent.futures только логирует
            try:
                self._dispatch(acquisition.result(), future)
            except Exception as e:
                logger.error(f"Failed to dispatch job {future.id}: {e}", exc_info=True)
                if not future.done():
                    future.set_exception(e)

        self._acquire_unit().add_done_callback(on_acquired)

    def _acquire_unit(self) -> Future:
        """
        Получение свободного исполнителя.

        Свободный исполнитель отдается сразу, в обход очереди. Иначе запрос
        ставится в конец очереди и будет выполнен при освобождении исполнителя.
        """
        acquisition: Future = Future()
        idle_unit = next((unit for unit in self._pool if unit.is_available()), None)

        if idle_unit is None and not self._has_live_units():
            acquisition.set_exception(UnitError("No execution units left in the pool"))
        elif idle_unit is not None:
            acquisition.set_result(idle_unit)
        else:
            self._queue.append(acquisition)
            self._metrics.update_queue_size(len(self._queue))
            logger.debug(f"No idle unit, request queued (queue size: {len(self._queue)})")

        return acquisition

    def _dispatch(self, unit: UnitRecord, future: JobFuture):
        """Запуск задачи на исполнителе."""
        if unit.id in self._jobs:
            raise JobPoolError(f"Unit {unit.id} already has a job in flight")

        unit.set_busy()
        future.unit_id = unit.id

        def on_resolve(payload: Any):
            record = self._jobs.pop(unit.id)
            future.set_result(payload)
            unit.jobs_completed += 1
            self._metrics.update_job_completion(record.get_duration(), success=True)
            logger.debug(f"Job {future.id} completed on unit {unit.id}")
            self._release_unit(unit)

        def on_reject(error: BaseException):
            record = self._jobs.pop(unit.id)
            future.set_exception(error)
            unit.jobs_failed += 1
            self._metrics.update_job_completion(record.get_duration(), success=False)
            logger.info(f"Job {future.id} ({future.job_name}) failed on unit {unit.id}: {error}")
            self._release_unit(unit)

        record = JobRecord(
            unit_id=unit.id,
            job_name=future.job_name,
            future=future,
            on_progress=future.notify_progress,
            on_resolve=on_resolve,
            on_reject=on_reject
        )
        future.started_at = record.started_at
        self._jobs[unit.id] = record

        logger.debug(f"Dispatching job {future.id} ({future.job_name}) to unit {unit.id}")
        try:
            unit.handle.send(encode_message(JobRequest(job_name=future.job_name, params=future.params)))
        except Exception as e:
            logger.error(f"Failed to send job {future.id} to unit {unit.id}: {e}")
            self._on_unit_fault(unit.id, f"send failed: {e}")

    def _release_unit(self, unit: UnitRecord):
        """Перевод исполнителя в IDLE и передача его следующему запросу из очереди."""
        unit.set_idle()
        logger.debug(f"Unit {unit.id} is idle")

        if self._queue:
            acquisition = self._queue.popleft()
            self._metrics.update_queue_size(len(self._queue))
            acquisition.set_result(unit)

    # ------------------------------------------------------------------
    # Сообщения и сбои исполнителей
    # ------------------------------------------------------------------

    def _on_unit_message(self, unit_id: str, raw: Dict[str, Any]):
        """Маршрутизация сообщения от исполнителя по его типу."""
        if unit_id in self._retired_ids:
            logger.debug(f"Ignoring message from retired unit {unit_id}")
            return

        unit = self.lookup_unit(unit_id)
        message = decode_message(raw)

        if isinstance(message, ReadyMessage):
            if unit.status == UnitStatus.BUSY:
                raise ProtocolError(f"Unit {unit_id} sent ready while running a job")
            logger.info(f"Unit {unit_id} is ready")
            self._release_unit(unit)

        elif isinstance(message, ProgressMessage):
            self._active_job(unit_id, "progress").on_progress(message.ratio)

        elif isinstance(message, CompleteMessage):
            self._active_job(unit_id, "complete").on_resolve(message.payload)

        elif isinstance(message, ErrorMessage):
            record = self._active_job(unit_id, "error")
            if message.kind == UNKNOWN_JOB_KIND:
                error = UnknownJobError(record.job_name)
            else:
                error = JobError(message.error, job_name=record.job_name)
            record.on_reject(error)

        else:
            raise ProtocolError(f"Unit {unit_id} sent unexpected {type(message).__name__}")

    def _active_job(self, unit_id: str, message_type: str) -> JobRecord:
        record = self._jobs.get(unit_id)
        if record is None:
            raise ProtocolError(f"Unit {unit_id} sent '{message_type}' with no job in flight")
        return record

    def _on_unit_fault(self, unit_id: str, reason: Optional[str] = None):
        """
        Обработка сбоя исполнителя.

        Выполняемая задача отклоняется с ``FaultError``, исполнитель
        завершается и заменяется новым на той же позиции пула.
        """
        if unit_id in self._retired_ids:
            return

        unit = self.lookup_unit(unit_id)
        unit.set_error()
        logger.warning(f"Unit {unit_id} faulted: {reason}")

        try:
            unit.handle.terminate()
        except Exception as e:
            logger.error(f"Problem terminating unit {unit_id}: {e}")

        record = self._jobs.get(unit_id)
        if record is not None:
            record.future.set_exception(FaultError(unit_id, reason))
            del self._jobs[unit_id]
            self._metrics.total_jobs_faulted += 1

        self._retired_ids.add(unit_id)

        if not self._accepting:
            return

        replacement_id = f"{unit_id}{REPLACED_SUFFIX}"
        try:
            replacement = self._spawn_unit(replacement_id)
        except Exception as e:
            # Позиция без исполнителя удаляется из пула
            logger.error(f"Failed to spawn replacement {replacement_id} for unit {unit_id}: {e}", exc_info=True)
            self._pool.remove(unit)
            self._metrics.total_spawn_failures += 1
            self._reject_queue_if_unservable()
            return

        self._pool[self._pool.index(unit)] = replacement
        self._metrics.total_units_replaced += 1
        logger.info(f"Unit {unit_id} replaced by {replacement.id}")

    def _has_live_units(self) -> bool:
        return any(unit.status != UnitStatus.ERROR for unit in self._pool)

    def _reject_queue_if_unservable(self):
        """Отклонение очереди, если в пуле не осталось исполнителей."""
        if self._has_live_units() or not self._queue:
            return

        logger.error(f"No execution units left, rejecting {len(self._queue)} queued jobs")
        while self._queue:
            self._queue.popleft().set_exception(UnitError("No execution units left in the pool"))
        self._metrics.update_queue_size(0)

    def _spawn_unit(self, unit_id: str) -> UnitRecord:
        """Создание исполнителя в состоянии STARTING."""
        handle = self._unit_factory(self.location, unit_id)
        handle.on_message(lambda message: self._mailbox.put(("message", unit_id, message)))
        handle.on_fault(lambda reason=None: self._mailbox.put(("fault", unit_id, reason)))

        record = UnitRecord(id=unit_id, handle=handle)
        handle.start()
        logger.debug(f"Spawned unit {unit_id}")
        return record

    # ------------------------------------------------------------------
    # Завершение работы
    # ------------------------------------------------------------------

    def _stop_accepting(self):
        self._accepting = False
        rejected = 0
        while self._queue:
            self._queue.popleft().set_exception(
                ShutdownError("Pool shut down before the job was dispatched")
            )
            rejected += 1
        self._metrics.update_queue_size(0)
        if rejected:
            logger.info(f"Rejected {rejected} queued jobs")

    def _terminate_units(self):
        for unit_id, record in list(self._jobs.items()):
            record.future.set_exception(ShutdownError(f"Pool shut down while job ran on unit {unit_id}"))
            del self._jobs[unit_id]

        for unit in self._pool:
            self._retired_ids.add(unit.id)
            try:
                unit.handle.terminate()
            except Exception as e:
                logger.error(f"Problem terminating unit {unit.id}: {e}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()

    def __repr__(self) -> str:
        return (f"PoolManager(units={self.get_unit_count()}, "
                f"queue_size={self.get_queue_size()}, "
                f"in_flight={self.get_jobs_in_flight()})")
