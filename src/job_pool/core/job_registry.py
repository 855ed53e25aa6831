"""
Реестр задач на стороне исполнителя.
"""

import threading
from typing import Any, Callable, Dict, Optional

from ..protocol import (
    Message,
    JobRequest,
    ReadyMessage,
    ProgressMessage,
    CompleteMessage,
    ErrorMessage,
    UNKNOWN_JOB_KIND,
    decode_message,
    encode_message,
)
from ..utils.logger import get_logger
from ..exceptions import InvalidArgumentError, ProtocolError, UnknownJobError


logger = get_logger(__name__)


JobHandler = Callable[[Dict[str, Any], Callable, Callable, Callable], Any]


class _JobContext:
    """Callback'и одного запуска задачи: прогресс, завершение и ошибка."""

    def __init__(self, registry: 'JobRegistry', job_name: str):
        self._registry = registry
        self._job_name = job_name
        self._settled = False
        self._lock = threading.Lock()

    def report_progress(self, current, total):
        with self._lock:
            if self._settled:
                logger.warning(f"Progress reported after job '{self._job_name}' was settled, ignoring")
                return
            self._registry._send(ProgressMessage(current=current, total=total))

    def complete(self, payload: Any = None):
        if self._settle('complete'):
            self._registry._send(CompleteMessage(payload=payload))

    def fail(self, error: Any = None):
        if isinstance(error, BaseException):
            error = f"{type(error).__name__}: {error}"
        if self._settle('fail'):
            self._registry._send(ErrorMessage(error=error))

    def _settle(self, outcome: str) -> bool:
        with self._lock:
            if self._settled:
                logger.warning(f"Job '{self._job_name}' called {outcome}() after it was settled, ignoring")
                return False
            self._settled = True
            return True


class JobRegistry:
    """
    Реестр обработчиков задач внутри исполнителя.

    Обработчик вызывается как ``handler(params, report_progress, complete, fail)``.
    ``report_progress(current, total)`` можно вызывать сколько угодно раз,
    задача заканчивается ровно одним вызовом ``complete(payload)`` или
    ``fail(error)``. Исключение, выброшенное самим обработчиком, не
    перехватывается здесь: его обрабатывает исполнитель как сбой.
    """

    def __init__(self, post: Callable[[Dict[str, Any]], None]):
        self._post = post
        self._jobs: Dict[str, JobHandler] = {}
        self._ready = False

    def register_job(self, name: str, handler: JobHandler) -> JobHandler:
        """
        Регистрация обработчика задачи.

        Args:
            name: Имя задачи; повторная регистрация заменяет обработчик
            handler: Функция-обработчик

        Returns:
            Зарегистрированный обработчик
        """
        if not name:
            raise InvalidArgumentError("Job name is required")
        if not callable(handler):
            raise InvalidArgumentError(f"Handler for job '{name}' must be callable")

        if name in self._jobs:
            logger.debug(f"Replacing handler for job '{name}'")
        self._jobs[name] = handler
        return handler

    def job(self, name: Optional[str] = None):
        """Декоратор для регистрации обработчика."""
        def decorator(handler: JobHandler) -> JobHandler:
            return self.register_job(name or handler.__name__, handler)
        return decorator

    def has_job(self, name: str) -> bool:
        return name in self._jobs

    def job_names(self):
        return sorted(self._jobs)

    def announce_ready(self):
        """Сообщение менеджеру о готовности принимать задачи."""
        self._ready = True
        self._send(ReadyMessage())

    def on_job_request(self, raw: Dict[str, Any]):
        """
        Обработка запроса на выполнение задачи.

        Args:
            raw: Сообщение в формате провода

        Raises:
            ProtocolError: если сообщение не является запросом задачи
        """
        if not self._ready:
            raise ProtocolError("Job request received before the unit announced ready")

        request = decode_message(raw)
        if not isinstance(request, JobRequest):
            raise ProtocolError(f"Expected a job request, got {type(request).__name__}")

        handler = self._jobs.get(request.job_name)
        if handler is None:
            error = UnknownJobError(request.job_name)
            logger.warning(str(error))
            self._send(ErrorMessage(error=str(error), kind=UNKNOWN_JOB_KIND))
            return

        logger.debug(f"Running job '{request.job_name}'")
        context = _JobContext(self, request.job_name)
        handler(request.params, context.report_progress, context.complete, context.fail)

    def _send(self, message: Message):
        self._post(encode_message(message))

    def __repr__(self) -> str:
        return f"JobRegistry(jobs={self.job_names()})"
