"""
Тесты для отдельных компонентов пула исполнителей.
"""

import json
import logging
from unittest.mock import Mock

import pytest

from job_pool.protocol import (
    MessageType,
    ReadyMessage,
    ProgressMessage,
    CompleteMessage,
    ErrorMessage,
    JobRequest,
    decode_message,
    encode_message,
)
from job_pool.core.job_registry import JobRegistry
from job_pool.core.graceful_shutdown import GracefulShutdown, ShutdownConfig, ShutdownPhase
from job_pool.models.job import JobFuture
from job_pool.models.unit import UnitRecord, UnitStatus
from job_pool.models.pool_metrics import PoolMetrics
from job_pool.units.base import resolve_location
from job_pool.utils.config import Config, load_config, save_config, load_config_from_env
from job_pool.utils.logger import (
    setup_logging,
    get_logger,
    get_log_metrics,
    get_log_counts_by_logger,
    reset_log_metrics,
)
from job_pool.utils.monitoring import HealthChecker, SystemMetrics, collect_system_metrics
from job_pool.exceptions import (
    ProtocolError,
    InvalidArgumentError,
    ConfigurationError,
    ShutdownError,
)


class TestProtocol:
    """Тесты протокола сообщений."""

    def test_decode_progress(self):
        message = decode_message({'type': 'progress', 'payload': {'current': 3, 'total': 10}})

        assert message == ProgressMessage(current=3, total=10)
        assert message.ratio == 0.3

    @pytest.mark.parametrize("current, ratio", [(0, 0.0), (10, 1.0)])
    def test_decode_progress_bounds(self, current, ratio):
        message = decode_message({'type': 'progress', 'payload': {'current': current, 'total': 10}})
        assert message.ratio == ratio

    def test_decode_each_unit_message(self):
        assert decode_message({'type': 'ready'}) == ReadyMessage()
        assert decode_message({'type': 'complete', 'payload': {'payload': [1, 2]}}) == CompleteMessage(payload=[1, 2])
        assert decode_message({'type': 'error', 'payload': {'error': 'bad'}}) == ErrorMessage(error='bad')

    def test_decode_job_request(self):
        request = decode_message({'type': 'job', 'payload': {'job_name': 'double'}})
        assert request == JobRequest(job_name='double', params={})

    def test_encode_is_json_serializable(self):
        wire = encode_message(JobRequest(job_name='double', params={'n': 5}))

        assert wire == {'type': 'job', 'payload': {'job_name': 'double', 'params': {'n': 5}}}
        assert json.loads(json.dumps(wire)) == wire

    def test_error_kind_only_when_set(self):
        assert encode_message(ErrorMessage(error='x')) == {'type': 'error', 'payload': {'error': 'x'}}
        assert encode_message(ErrorMessage(error='x', kind='unknown_job'))['payload']['kind'] == 'unknown_job'

    @pytest.mark.parametrize("raw", [
        None,
        [],
        {},
        {'type': 'nope'},
        {'type': 'ready', 'payload': 'text'},
        {'type': 'progress', 'payload': {'current': 1}},
        {'type': 'progress', 'payload': {'current': 1, 'total': 0}},
        {'type': 'progress', 'payload': {'current': True, 'total': 2}},
        {'type': 'progress', 'payload': {'current': 12, 'total': 10}},
        {'type': 'progress', 'payload': {'current': -1, 'total': 10}},
        {'type': 'job', 'payload': {'params': {}}},
    ])
    def test_malformed_messages(self, raw):
        with pytest.raises(ProtocolError):
            decode_message(raw)

    def test_message_types_cover_wire_tags(self):
        assert {t.value for t in MessageType} == {'ready', 'progress', 'complete', 'error', 'job'}


class TestJobRegistry:
    """Тесты реестра задач на стороне исполнителя."""

    def _registry(self):
        sent = []
        registry = JobRegistry(post=sent.append)
        return registry, sent

    def test_ready_message(self):
        registry, sent = self._registry()
        registry.announce_ready()
        assert sent == [{'type': 'ready', 'payload': {}}]

    def test_request_before_ready(self):
        registry, _ = self._registry()
        registry.register_job('noop', lambda params, progress, complete, fail: complete())

        with pytest.raises(ProtocolError):
            registry.on_job_request(JobRequest('noop').to_wire())

    def test_handler_streams_progress_and_completes(self):
        registry, sent = self._registry()

        def double(params, progress, complete, fail):
            progress(1, 2)
            progress(2, 2)
            complete(params['n'] * 2)

        registry.register_job('double', double)
        registry.announce_ready()
        registry.on_job_request(JobRequest('double', {'n': 5}).to_wire())

        assert [m['type'] for m in sent] == ['ready', 'progress', 'progress', 'complete']
        assert sent[-1]['payload'] == {'payload': 10}

    def test_handler_fail(self):
        registry, sent = self._registry()
        registry.register_job('parse', lambda params, progress, complete, fail: fail('bad input'))
        registry.announce_ready()

        registry.on_job_request(JobRequest('parse').to_wire())

        assert sent[-1] == {'type': 'error', 'payload': {'error': 'bad input'}}

    def test_fail_with_exception_is_serialized(self):
        registry, sent = self._registry()
        registry.register_job('parse', lambda params, progress, complete, fail: fail(ValueError('oops')))
        registry.announce_ready()

        registry.on_job_request(JobRequest('parse').to_wire())

        assert sent[-1]['payload']['error'] == 'ValueError: oops'

    def test_unknown_job(self):
        registry, sent = self._registry()
        registry.announce_ready()

        registry.on_job_request(JobRequest('missing').to_wire())

        assert sent[-1]['type'] == 'error'
        assert sent[-1]['payload']['kind'] == 'unknown_job'

    def test_missing_job_name(self):
        registry, _ = self._registry()
        registry.announce_ready()

        with pytest.raises(ProtocolError):
            registry.on_job_request({'type': 'job', 'payload': {}})

    def test_handler_exception_propagates(self):
        registry, _ = self._registry()

        def broken(params, progress, complete, fail):
            raise RuntimeError('crash')

        registry.register_job('broken', broken)
        registry.announce_ready()

        with pytest.raises(RuntimeError):
            registry.on_job_request(JobRequest('broken').to_wire())

    def test_second_outcome_is_ignored(self, caplog):
        registry, sent = self._registry()

        def twice(params, progress, complete, fail):
            complete(1)
            fail('late')
            progress(1, 1)

        registry.register_job('twice', twice)
        registry.announce_ready()

        with caplog.at_level(logging.WARNING, logger="job_pool"):
            registry.on_job_request(JobRequest('twice').to_wire())

        assert [m['type'] for m in sent] == ['ready', 'complete']
        assert "after it was settled" in caplog.text

    def test_reregistration_overwrites(self):
        registry, sent = self._registry()
        registry.register_job('job', lambda params, progress, complete, fail: complete('old'))
        registry.register_job('job', lambda params, progress, complete, fail: complete('new'))
        registry.announce_ready()

        registry.on_job_request(JobRequest('job').to_wire())

        assert sent[-1]['payload'] == {'payload': 'new'}
        assert registry.job_names() == ['job']

    def test_decorator_registration(self):
        registry, _ = self._registry()

        @registry.job()
        def downcase(params, progress, complete, fail):
            complete(params['text'].lower())

        assert registry.has_job('downcase')

    def test_invalid_registration(self):
        registry, _ = self._registry()
        with pytest.raises(InvalidArgumentError):
            registry.register_job('', lambda *args: None)
        with pytest.raises(InvalidArgumentError):
            registry.register_job('job', 'not callable')


class TestModels:
    """Тесты моделей."""

    def test_unit_record_transitions(self):
        unit = UnitRecord(id='unit-0', handle=None)
        assert unit.status == UnitStatus.STARTING
        assert not unit.is_available()

        unit.set_idle()
        assert unit.is_available()
        assert unit.ready_at is not None

        unit.set_busy()
        assert unit.status == UnitStatus.BUSY

        unit.set_error()
        assert unit.status == UnitStatus.ERROR

    def test_job_future_progress(self):
        future = JobFuture('job', {'a': 1})
        seen = []
        future.add_progress_callback(seen.append)

        future.notify_progress(0.5)
        future.set_result('done')

        assert seen == [0.5]
        assert future.progress == 0.5
        assert future.result() == 'done'
        assert future.running() is False

    def test_pool_metrics(self):
        metrics = PoolMetrics()
        metrics.start_pool()
        metrics.update_job_completion(1.0, success=True)
        metrics.update_job_completion(3.0, success=False)
        metrics.update_queue_size(4)
        metrics.update_queue_size(1)

        data = metrics.to_dict()
        assert data['total_jobs_completed'] == 1
        assert data['total_jobs_failed'] == 1
        assert data['average_execution_time'] == 2.0
        assert data['max_queue_size'] == 4
        assert data['current_queue_size'] == 1
        assert data['success_rate'] == 50.0


class TestLocation:
    """Тесты разрешения расположения задач."""

    def test_callable_location(self):
        def setup(registry):
            pass

        assert resolve_location(setup) is setup

    def test_module_and_attribute(self):
        assert resolve_location('json:dumps') is json.dumps

    def test_missing_location(self):
        with pytest.raises(ConfigurationError):
            resolve_location(None)

    def test_module_without_register_jobs(self):
        with pytest.raises(ConfigurationError):
            resolve_location('json')

    def test_unknown_module(self):
        with pytest.raises(ConfigurationError):
            resolve_location('no_such_module_here:setup')


class TestConfig:
    """Тесты конфигурации."""

    def test_defaults(self):
        config = Config()
        assert config.pool_size == 2
        assert config.unit_type == "thread"
        assert config.validate()

    def test_round_trip_yaml(self, tmp_path):
        config = Config(pool_size=4, unit_type="process", location="jobs:register_jobs",
                        shutdown=ShutdownConfig(timeout=1.5))
        path = tmp_path / "pool.yaml"

        save_config(config, path)
        loaded = load_config(path)

        assert loaded == config

    def test_load_json(self, tmp_path):
        path = tmp_path / "pool.json"
        path.write_text(json.dumps({'pool_size': 3, 'shutdown': {'wait_for_jobs': False}}))

        config = load_config(path)

        assert config.pool_size == 3
        assert config.shutdown.wait_for_jobs is False

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "pool.ini"
        path.write_text("pool_size=3")
        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")

    @pytest.mark.parametrize("overrides", [
        {'pool_size': 0},
        {'unit_type': 'fiber'},
    ])
    def test_validation(self, overrides):
        with pytest.raises(ConfigurationError):
            Config().update(**overrides).validate()

    def test_unknown_keys(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({'pool_sise': 3})

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('JOB_POOL_SIZE', '6')
        monkeypatch.setenv('JOB_POOL_UNIT_TYPE', 'process')
        monkeypatch.setenv('JOB_POOL_LOCATION', 'examples.jobs')
        monkeypatch.setenv('JOB_POOL_SHUTDOWN_TIMEOUT', '2.5')

        config = load_config_from_env()

        assert config.pool_size == 6
        assert config.unit_type == 'process'
        assert config.location == 'examples.jobs'
        assert config.shutdown.timeout == 2.5

    def test_from_mapping(self):
        config = load_config_from_env({'JOB_POOL_ENABLE_METRICS': 'false', 'JOB_POOL_LOG_FILE': 'pool.log'})

        assert config.enable_metrics is False
        assert config.log_file == 'pool.log'

    def test_invalid_env_value(self):
        with pytest.raises(ConfigurationError):
            load_config_from_env({'JOB_POOL_SIZE': 'many'})

    def test_unknown_shutdown_keys(self):
        with pytest.raises(ConfigurationError):
            Config.from_dict({'shutdown': {'grace': 1}})


class TestGracefulShutdown:
    """Тесты graceful shutdown."""

    def test_execute_without_initiate(self):
        with pytest.raises(ShutdownError):
            GracefulShutdown().execute_shutdown()

    def test_phases_and_callbacks(self):
        shutdown = GracefulShutdown(ShutdownConfig(timeout=0.1))
        calls = []
        shutdown.add_cleanup_callback(lambda: calls.append('cleanup'))

        shutdown.initiate_shutdown()
        status = shutdown.execute_shutdown(
            stop_new_jobs_callback=lambda: calls.append('stop'),
            get_pending_jobs_callback=lambda: 0,
            terminate_units_callback=lambda: calls.append('terminate')
        )

        assert status.completed
        assert status.phase == ShutdownPhase.COMPLETED
        assert calls == ['stop', 'terminate', 'cleanup']
        assert shutdown.is_shutdown_completed()

    def test_wait_timeout_is_recorded(self):
        shutdown = GracefulShutdown(ShutdownConfig(timeout=0.1))
        shutdown.initiate_shutdown()

        status = shutdown.execute_shutdown(get_pending_jobs_callback=lambda: 2)

        assert status.completed
        assert status.jobs_pending_at_timeout == 2

    def test_failing_step_is_counted(self):
        shutdown = GracefulShutdown()
        shutdown.initiate_shutdown()

        def broken():
            raise RuntimeError('step failed')

        status = shutdown.execute_shutdown(terminate_units_callback=broken)

        assert status.completed
        assert status.error_count == 1


class TestLogging:
    """Тесты логирования."""

    @pytest.fixture(autouse=True)
    def restore_package_logger(self):
        yield
        setup_logging(enable_console=False, enable_metrics=False)
        logging.getLogger('job_pool').setLevel(logging.NOTSET)

    def test_log_metrics(self, tmp_path):
        log_file = tmp_path / "logs" / "pool.log"
        setup_logging(level="DEBUG", log_file=str(log_file), enable_console=False)
        reset_log_metrics()

        logger = get_logger("job_pool.tests")
        logger.info("info message")
        logger.warning("warning message")
        logger.error("error message")

        metrics = get_log_metrics()
        assert metrics['total_logs'] == 3
        assert metrics['error_count'] == 1
        assert metrics['warning_count'] == 1
        assert get_log_counts_by_logger() == {'job_pool.tests': 3}
        assert "warning message" in log_file.read_text(encoding='utf-8')

    def test_foreign_names_are_nested_under_package(self):
        assert get_logger("my_jobs").name == "job_pool.my_jobs"
        assert get_logger("job_pool.core").name == "job_pool.core"


class TestMonitoring:
    """Тесты мониторинга."""

    def test_collect_system_metrics(self):
        metrics = collect_system_metrics()
        assert metrics.cpu_count >= 1
        assert 0.0 <= metrics.memory_percent <= 100.0

    def test_health_checker(self):
        stuck = UnitRecord(id='unit-0', handle=None)
        stuck.created_at = stuck.created_at.replace(year=stuck.created_at.year - 1)
        broken = UnitRecord(id='unit-1', handle=None, status=UnitStatus.ERROR)
        manager = Mock()
        manager.get_units.return_value = [stuck, broken]
        manager.get_queue_size.return_value = 500

        status = HealthChecker(manager).check_health(SystemMetrics(memory_percent=10.0))

        assert not status.is_healthy
        assert status.issues == ["Unit unit-1 is in error state"]
        assert any("unit-0" in warning for warning in status.warnings)
        assert any("queue size" in warning for warning in status.warnings)

    def test_healthy_pool(self):
        idle = UnitRecord(id='unit-0', handle=None, status=UnitStatus.IDLE)
        manager = Mock()
        manager.get_units.return_value = [idle]
        manager.get_queue_size.return_value = 0

        status = HealthChecker(manager).check_health(SystemMetrics())

        assert status.is_healthy
        assert status.warnings == []


if __name__ == "__main__":
    pytest.main([__file__])
