"""
Протокол сообщений между менеджером пула и исполнителями.

Сообщение на проводе имеет вид ``{"type": str, "payload": dict}`` в обе
стороны. Полезная нагрузка должна быть сериализуемой (словари, списки,
скаляры) - живые ссылки через границу исполнителя не передаются.
"""

from enum import Enum
from numbers import Real
from typing import Any, Dict, Optional, Union
from dataclasses import dataclass, field

from .exceptions import ProtocolError


class MessageType(Enum):
    """Типы сообщений."""
    # исполнитель -> менеджер
    READY = "ready"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"
    # менеджер -> исполнитель
    JOB = "job"


# Маркер ошибки, сформированной самим исполнителем (а не обработчиком)
UNKNOWN_JOB_KIND = "unknown_job"


@dataclass(frozen=True)
class ReadyMessage:
    """Исполнитель готов принимать задачи."""

    def to_wire(self) -> Dict[str, Any]:
        return {'type': MessageType.READY.value, 'payload': {}}


@dataclass(frozen=True)
class ProgressMessage:
    """Промежуточный прогресс задачи."""
    current: Real
    total: Real

    @property
    def ratio(self) -> float:
        return self.current / self.total

    def to_wire(self) -> Dict[str, Any]:
        return {
            'type': MessageType.PROGRESS.value,
            'payload': {'current': self.current, 'total': self.total}
        }


@dataclass(frozen=True)
class CompleteMessage:
    """Успешное завершение задачи."""
    payload: Any = None

    def to_wire(self) -> Dict[str, Any]:
        return {'type': MessageType.COMPLETE.value, 'payload': {'payload': self.payload}}


@dataclass(frozen=True)
class ErrorMessage:
    """Ошибка уровня задачи."""
    error: Any = None
    kind: Optional[str] = None

    def to_wire(self) -> Dict[str, Any]:
        payload = {'error': self.error}
        if self.kind:
            payload['kind'] = self.kind
        return {'type': MessageType.ERROR.value, 'payload': payload}


@dataclass(frozen=True)
class JobRequest:
    """Запрос на выполнение задачи."""
    job_name: str
    params: Dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> Dict[str, Any]:
        return {
            'type': MessageType.JOB.value,
            'payload': {'job_name': self.job_name, 'params': self.params}
        }


Message = Union[ReadyMessage, ProgressMessage, CompleteMessage, ErrorMessage, JobRequest]


def encode_message(message: Message) -> Dict[str, Any]:
    """Преобразование сообщения в формат провода."""
    return message.to_wire()


def decode_message(raw: Any) -> Message:
    """
    Разбор сообщения из формата провода.

    Args:
        raw: Словарь вида {"type": ..., "payload": ...}

    Returns:
        Типизированное сообщение

    Raises:
        ProtocolError: если сообщение некорректно или тип неизвестен
    """
    if not isinstance(raw, dict):
        raise ProtocolError(f"Message must be a mapping, got {type(raw).__name__}")

    tag = raw.get('type')
    if tag is None:
        raise ProtocolError("Message has no type")

    try:
        message_type = MessageType(tag)
    except ValueError:
        raise ProtocolError(f"Unknown message type: {tag!r}") from None

    payload = raw.get('payload')
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ProtocolError(f"Payload of '{tag}' message must be a mapping")

    if message_type is MessageType.READY:
        return ReadyMessage()

    if message_type is MessageType.PROGRESS:
        current = payload.get('current')
        total = payload.get('total')
        for name, value in (('current', current), ('total', total)):
            if isinstance(value, bool) or not isinstance(value, Real):
                raise ProtocolError(f"Progress '{name}' must be a number, got {value!r}")
        if total <= 0:
            raise ProtocolError(f"Progress total must be positive, got {total!r}")
        if not 0 <= current <= total:
            raise ProtocolError(f"Progress current must be within [0, {total!r}], got {current!r}")
        return ProgressMessage(current=current, total=total)

    if message_type is MessageType.COMPLETE:
        return CompleteMessage(payload=payload.get('payload'))

    if message_type is MessageType.ERROR:
        return ErrorMessage(error=payload.get('error'), kind=payload.get('kind'))

    if message_type is MessageType.JOB:
        job_name = payload.get('job_name')
        if not job_name or not isinstance(job_name, str):
            raise ProtocolError("Job request has no job name")
        params = payload.get('params')
        if params is None:
            params = {}
        return JobRequest(job_name=job_name, params=params)

    raise ProtocolError(f"Unhandled message type: {message_type}")
