"""
Логирование пула исполнителей.

Все модули пакета пишут в логгеры ``job_pool.*``; ``setup_logging``
настраивает только корневой логгер пакета и не трогает логгеры приложения.
"""

import logging
import sys
import threading
from collections import Counter
from typing import Optional, Dict
from pathlib import Path


PACKAGE_LOGGER = 'job_pool'

# Ключи метрик по уровню записи, от старшего к младшему
_LEVEL_KEYS = (
    (logging.ERROR, 'error_count'),
    (logging.WARNING, 'warning_count'),
    (logging.INFO, 'info_count'),
    (logging.DEBUG, 'debug_count'),
)


class JobPoolFormatter(logging.Formatter):
    """Форматтер с именем потока: диспетчер и исполнители работают в разных потоках."""

    def __init__(self):
        super().__init__(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(threadName)-18s | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )


class MetricsHandler(logging.Handler):
    """Подсчет записей лога по уровням и по логгерам."""

    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self._lock = threading.Lock()
        self._levels: Counter = Counter()
        self._loggers: Counter = Counter()

    def emit(self, record):
        key = next((name for level, name in _LEVEL_KEYS if record.levelno >= level), None)
        with self._lock:
            self._levels['total_logs'] += 1
            if key:
                self._levels[key] += 1
            self._loggers[record.name] += 1

    def get_metrics(self) -> Dict[str, int]:
        with self._lock:
            metrics = {'total_logs': self._levels['total_logs']}
            metrics.update({name: self._levels[name] for _, name in _LEVEL_KEYS})
            return metrics

    def get_logger_counts(self) -> Dict[str, int]:
        """Количество записей по имени логгера."""
        with self._lock:
            return dict(self._loggers)

    def reset_metrics(self):
        with self._lock:
            self._levels.clear()
            self._loggers.clear()


_metrics_handler = MetricsHandler()


def _add_handler(logger: logging.Logger, handler: logging.Handler, level: int, formatter: logging.Formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    enable_console: bool = True,
    enable_metrics: bool = True,
    log_format: Optional[str] = None
) -> logging.Logger:
    """
    Настройка логирования пакета.

    Args:
        level: Уровень логирования
        log_file: Путь к файлу логов; каталог создается при необходимости
        enable_console: Вывод в stdout
        enable_metrics: Подсчет записей для ``get_log_metrics``
        log_format: Формат вместо стандартного

    Returns:
        Логгер пакета
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(log_format) if log_format else JobPoolFormatter()

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(numeric_level)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        if handler is not _metrics_handler:
            handler.close()

    if enable_console:
        _add_handler(package_logger, logging.StreamHandler(sys.stdout), numeric_level, formatter)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _add_handler(package_logger, logging.FileHandler(log_file, encoding='utf-8'), numeric_level, formatter)

    if enable_metrics:
        package_logger.addHandler(_metrics_handler)

    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Логгер модуля; имена вне пакета попадают под ``job_pool``."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + '.'):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def get_log_metrics() -> Dict[str, int]:
    """Получение метрик логов."""
    return _metrics_handler.get_metrics()


def get_log_counts_by_logger() -> Dict[str, int]:
    return _metrics_handler.get_logger_counts()


def reset_log_metrics():
    """Сброс метрик логов."""
    _metrics_handler.reset_metrics()
