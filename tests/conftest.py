"""
Общие фикстуры для тестов пула исполнителей.
"""

import time

import pytest

from job_pool import PoolManager, ShutdownConfig
from job_pool.units.base import ExecutionUnit
from job_pool.exceptions import UnitError


class FakeUnit(ExecutionUnit):
    """Исполнитель в памяти, сообщения которого задаются тестом."""

    def __init__(self, location, unit_id, auto_ready=True, fail_terminate=False, fail_send=False):
        super().__init__(location, unit_id)
        self.auto_ready = auto_ready
        self.fail_terminate = fail_terminate
        self.fail_send = fail_send
        self.sent = []
        self.started = False
        self.terminate_calls = 0

    def start(self):
        self.started = True
        if self.auto_ready:
            self.emit({'type': 'ready', 'payload': {}})

    def send(self, message):
        if self.fail_send:
            raise UnitError(f"Unit {self.unit_id} transport is broken")
        self.sent.append(message)

    def terminate(self):
        self.terminate_calls += 1
        self._terminated.set()
        if self.fail_terminate:
            raise RuntimeError("terminate failed")

    @property
    def job_names(self):
        return [message['payload']['job_name'] for message in self.sent]

    def emit(self, message):
        self._emit_message(message)

    def progress(self, current, total):
        self.emit({'type': 'progress', 'payload': {'current': current, 'total': total}})

    def complete(self, payload=None):
        self.emit({'type': 'complete', 'payload': {'payload': payload}})

    def error(self, error, kind=None):
        payload = {'error': error}
        if kind:
            payload['kind'] = kind
        self.emit({'type': 'error', 'payload': payload})

    def fault(self, reason="transport failure"):
        self._emit_fault(reason)


class FakeUnitFactory:
    """Фабрика FakeUnit с доступом к созданным исполнителям по ID."""

    def __init__(self, silent_ids=(), broken_suffix=None, **unit_options):
        self.silent_ids = set(silent_ids)
        self.broken_suffix = broken_suffix
        self.unit_options = unit_options
        self.units = {}

    def __call__(self, location, unit_id):
        if self.broken_suffix and unit_id.endswith(self.broken_suffix):
            raise UnitError(f"Cannot start unit {unit_id}")
        options = dict(self.unit_options)
        if unit_id in self.silent_ids:
            options['auto_ready'] = False
        unit = FakeUnit(location, unit_id, **options)
        self.units[unit_id] = unit
        return unit


@pytest.fixture
def fake_unit_factory():
    return FakeUnitFactory


@pytest.fixture
def make_manager():
    """Создание менеджеров на FakeUnit с обязательным shutdown после теста."""
    managers = []

    def factory(pool_size=2, silent_ids=(), shutdown_timeout=0.2, broken_suffix=None, **unit_options):
        units = FakeUnitFactory(silent_ids=silent_ids, broken_suffix=broken_suffix, **unit_options)
        manager = PoolManager(
            units,
            pool_size=pool_size,
            location="tests:fake",
            shutdown_config=ShutdownConfig(timeout=shutdown_timeout)
        )
        manager.flush(timeout=2.0)
        managers.append(manager)
        return manager, units

    yield factory

    for manager in managers:
        manager.shutdown()


@pytest.fixture
def wait_until():
    """Ожидание выполнения условия с таймаутом."""
    def waiter(predicate, timeout=5.0, interval=0.02):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return waiter
