"""
Система конфигурации для пула исполнителей.
"""

import json
import yaml
import os
from typing import Any, Dict, Mapping, Optional, Union
from dataclasses import dataclass, asdict, field
from pathlib import Path

from ..core.graceful_shutdown import ShutdownConfig
from ..exceptions import ConfigurationError


SUPPORTED_UNIT_TYPES = ("thread", "process")


@dataclass
class Config:
    """Основная конфигурация пула исполнителей."""

    pool_size: int = 2
    unit_type: str = "thread"
    location: Optional[str] = None
    enable_metrics: bool = True
    log_level: str = "INFO"
    log_file: Optional[str] = None

    shutdown: ShutdownConfig = field(default_factory=ShutdownConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Преобразование в словарь."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Создание из словаря."""
        data = dict(data or {})
        shutdown_data = data.pop('shutdown', None) or {}

        unknown = set(data) - {f for f in cls.__dataclass_fields__ if f != 'shutdown'}
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        config = cls(**data)
        if shutdown_data:
            try:
                config.shutdown = ShutdownConfig(**shutdown_data)
            except TypeError as e:
                raise ConfigurationError(f"Invalid shutdown configuration: {e}") from e
        return config

    def validate(self) -> bool:
        """Валидация конфигурации."""
        errors = []

        if not isinstance(self.pool_size, int) or self.pool_size < 1:
            errors.append("pool_size must be >= 1")

        if self.unit_type not in SUPPORTED_UNIT_TYPES:
            errors.append(f"unit_type must be one of {', '.join(SUPPORTED_UNIT_TYPES)}")

        if self.shutdown.timeout < 0:
            errors.append("shutdown.timeout must be >= 0")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def update(self, **kwargs) -> 'Config':
        """Обновление конфигурации с новыми значениями."""
        new_config = self.to_dict()
        new_config.update(kwargs)
        return Config.from_dict(new_config)


_LOADERS = {
    '.yaml': yaml.safe_load,
    '.yml': yaml.safe_load,
    '.json': json.load,
}

_DUMPERS = {
    'yaml': lambda data, f: yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False),
    'json': lambda data, f: json.dump(data, f, indent=2, ensure_ascii=False),
}

# Переменная окружения -> (ключ конфигурации, преобразование)
_ENV_VARS = {
    'JOB_POOL_SIZE': ('pool_size', int),
    'JOB_POOL_UNIT_TYPE': ('unit_type', str),
    'JOB_POOL_LOCATION': ('location', str),
    'JOB_POOL_LOG_LEVEL': ('log_level', str),
    'JOB_POOL_LOG_FILE': ('log_file', str),
    'JOB_POOL_ENABLE_METRICS': ('enable_metrics', lambda value: value.lower() in ('1', 'true', 'yes')),
    'JOB_POOL_SHUTDOWN_TIMEOUT': ('shutdown.timeout', float),
}


def load_config(file_path: Union[str, Path]) -> Config:
    """
    Загрузка конфигурации из файла.

    Args:
        file_path: Путь к файлу конфигурации (.yaml, .yml или .json)

    Returns:
        Проверенная конфигурация
    """
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    loader = _LOADERS.get(file_path.suffix.lower())
    if loader is None:
        raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

    with open(file_path, 'r', encoding='utf-8') as f:
        data = loader(f)

    config = Config.from_dict(data or {})
    config.validate()
    return config


def save_config(config: Config, file_path: Union[str, Path], format: str = 'yaml'):
    """Сохранение конфигурации в файл формата 'yaml' или 'json'."""
    dumper = _DUMPERS.get(format.lower())
    if dumper is None:
        raise ConfigurationError(f"Unsupported format: {format}")

    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)
    with open(file_path, 'w', encoding='utf-8') as f:
        dumper(config.to_dict(), f)


def load_config_from_env(environ: Optional[Mapping[str, str]] = None) -> Config:
    """
    Загрузка конфигурации из переменных окружения ``JOB_POOL_*``.

    Args:
        environ: Источник переменных; по умолчанию ``os.environ``
    """
    environ = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    for variable, (key, convert) in _ENV_VARS.items():
        raw = environ.get(variable)
        if not raw:
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {variable}: {raw!r}") from e

        section, _, name = key.rpartition('.')
        target = data.setdefault(section, {}) if section else data
        target[name] = value

    config = Config.from_dict(data)
    config.validate()
    return config
