"""
Транспорты исполнителей.
"""

from .base import ExecutionUnit, resolve_location
from .thread_unit import ThreadUnit
from .process_unit import ProcessUnit

UNIT_TYPES = {
    "thread": ThreadUnit,
    "process": ProcessUnit,
}

__all__ = [
    "ExecutionUnit",
    "ThreadUnit",
    "ProcessUnit",
    "UNIT_TYPES",
    "resolve_location"
]
