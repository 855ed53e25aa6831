"""
Базовый интерфейс исполнителя и разрешение расположения задач.
"""

import importlib
import threading
from typing import Any, Callable, Dict, Optional, Union

from ..utils.logger import get_logger
from ..exceptions import ConfigurationError


logger = get_logger(__name__)


# Имя функции регистрации, если в расположении указан только модуль
DEFAULT_SETUP_ATTRIBUTE = "register_jobs"

Location = Union[str, Callable[[Any], None], None]


def resolve_location(location: Location) -> Callable[[Any], None]:
    """
    Получение функции, регистрирующей задачи в реестре исполнителя.

    Args:
        location: Callable ``setup(registry)``, строка ``"package.module:function"``
            или ``"package.module"`` (используется ``register_jobs`` модуля)

    Returns:
        Функция регистрации задач
    """
    if location is None:
        raise ConfigurationError("Job location is required to start an execution unit")

    if callable(location):
        return location

    if not isinstance(location, str):
        raise ConfigurationError(f"Unsupported job location: {location!r}")

    module_name, _, attribute = location.partition(':')
    attribute = attribute or DEFAULT_SETUP_ATTRIBUTE

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import job module '{module_name}': {e}") from e

    setup = getattr(module, attribute, None)
    if not callable(setup):
        raise ConfigurationError(f"Job location '{location}' does not name a callable")
    return setup


class ExecutionUnit:
    """
    Изолированный исполнитель, доступный только через сообщения.

    Менеджер подписывается на входящие сообщения и на сбои, затем вызывает
    ``start()``. После ``terminate()`` исполнитель больше ничего не сообщает.
    """

    def __init__(self, location: Location, unit_id: str):
        self.location = location
        self.unit_id = unit_id
        self._message_handler: Optional[Callable[[Dict[str, Any]], None]] = None
        self._fault_handler: Optional[Callable[[str], None]] = None
        self._terminated = threading.Event()

    def on_message(self, handler: Callable[[Dict[str, Any]], None]):
        self._message_handler = handler

    def on_fault(self, handler: Callable[[str], None]):
        self._fault_handler = handler

    def start(self):
        raise NotImplementedError

    def send(self, message: Dict[str, Any]):
        raise NotImplementedError

    def terminate(self):
        raise NotImplementedError

    def is_terminated(self) -> bool:
        return self._terminated.is_set()

    def resource_usage(self) -> Dict[str, Any]:
        """Потребление ресурсов исполнителем."""
        return {}

    def _emit_message(self, message: Dict[str, Any]):
        if self.is_terminated():
            logger.debug(f"Dropping message from terminated unit {self.unit_id}")
            return
        if self._message_handler:
            self._message_handler(message)

    def _emit_fault(self, reason: str):
        if self.is_terminated():
            return
        logger.warning(f"Unit {self.unit_id} fault: {reason}")
        if self._fault_handler:
            self._fault_handler(reason)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.unit_id}, terminated={self.is_terminated()})"
