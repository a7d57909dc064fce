"""
Configuration schema for PSS-Live.

Supports:
- YAML file loading
- Environment variable substitution (${VAR_NAME})
- Validation with error messages

Example config (pss.yml):
    version: 1

    listener:
      host: 0.0.0.0
      port: ${PSS_UDP_PORT}

    publisher:
      queue_size: 256
"""

import ipaddress
import logging
import os
import re
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, List, Any

import yaml

from ..collectors.udp_listener import DEFAULT_PORT
from ..core.errors import ErrorCode, PSSError


LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


class ConfigError(PSSError):
    """Configuration file could not be loaded."""
    code = ErrorCode.E3001_INVALID_CONFIG


class ConfigValidationError(ConfigError):
    """Configuration loaded but failed validation."""
    code = ErrorCode.E3002_VALIDATION_FAILED

    def __init__(self, errors: List[str]):
        super().__init__(f"{len(errors)} configuration error(s): " + "; ".join(errors))
        self.errors = errors


def _substitute_env_vars(value: Any) -> Any:
    """
    Substitute ${VAR_NAME} with environment variable values.

    Example:
        ${PSS_UDP_PORT} → os.environ.get('PSS_UDP_PORT')
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}'

        def replace(match):
            var_name = match.group(1)
            env_value = os.environ.get(var_name)
            if env_value is None:
                return match.group(0)  # Keep original if not found
            return env_value

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]

    return value


def _coerce_int(value: Any) -> Any:
    """Env substitution yields strings; turn numeric ones back into ints."""
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return value


@dataclass
class ListenerConfig:
    """UDP listener settings."""
    host: str = '0.0.0.0'
    port: int = DEFAULT_PORT
    buffer_size: int = 65535
    recv_timeout: float = 1.0


@dataclass
class PublisherConfig:
    """Subscriber fan-out settings."""
    queue_size: int = 256


@dataclass
class LoggingConfig:
    level: str = 'INFO'

    @property
    def level_number(self) -> int:
        return getattr(logging, self.level.upper(), logging.INFO)


@dataclass
class PrometheusConfig:
    """Prometheus exporter settings."""
    enabled: bool = False
    port: int = 9090
    prefix: str = 'pss_live'


@dataclass
class ExportersConfig:
    """Exporter settings."""
    prometheus: PrometheusConfig = field(default_factory=PrometheusConfig)


@dataclass
class PSSConfig:
    """Root configuration."""

    version: int = 1
    listener: ListenerConfig = field(default_factory=ListenerConfig)
    publisher: PublisherConfig = field(default_factory=PublisherConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    exporters: ExportersConfig = field(default_factory=ExportersConfig)

    @classmethod
    def load(cls, path: Path) -> 'PSSConfig':
        """Load from YAML file with env var substitution."""
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config not found: {path}")

        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Config root must be a mapping: {path}")

        data = _substitute_env_vars(data)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'PSSConfig':
        """Create from dictionary."""
        listener = dict(data.get('listener', {}))
        for key in ('port', 'buffer_size'):
            if key in listener:
                listener[key] = _coerce_int(listener[key])

        publisher = dict(data.get('publisher', {}))
        if 'queue_size' in publisher:
            publisher['queue_size'] = _coerce_int(publisher['queue_size'])

        try:
            return cls(
                version=data.get('version', 1),
                listener=ListenerConfig(**listener),
                publisher=PublisherConfig(**publisher),
                logging=LoggingConfig(**data.get('logging', {})),
                exporters=ExportersConfig(
                    prometheus=PrometheusConfig(**data.get('exporters', {}).get('prometheus', {})),
                ) if 'exporters' in data else ExportersConfig(),
            )
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}") from e

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def to_yaml(self) -> str:
        """Convert to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def validate(self) -> List[str]:
        """Validate config. Returns list of errors (empty if valid)."""
        errors = []

        try:
            ipaddress.IPv4Address(self.listener.host)
        except ValueError:
            errors.append(f"Invalid listener host (IPv4 expected): {self.listener.host}")

        if not isinstance(self.listener.port, int) or not 0 < self.listener.port < 65536:
            errors.append(f"Invalid listener port: {self.listener.port}")

        if not isinstance(self.listener.buffer_size, int) or self.listener.buffer_size <= 0:
            errors.append(f"Invalid buffer_size: {self.listener.buffer_size}")

        if self.listener.recv_timeout <= 0:
            errors.append(f"Invalid recv_timeout: {self.listener.recv_timeout}")

        if not isinstance(self.publisher.queue_size, int) or self.publisher.queue_size <= 0:
            errors.append(f"Invalid publisher queue_size: {self.publisher.queue_size}")

        if str(self.logging.level).upper() not in LOG_LEVELS:
            errors.append(f"Invalid log level: {self.logging.level}")

        prom = self.exporters.prometheus
        if prom.enabled and not 0 < prom.port < 65536:
            errors.append(f"Invalid Prometheus port: {prom.port}")

        return errors

    def check(self) -> None:
        """
        Validate, raising instead of returning the error list.

        Raises:
            ConfigValidationError: If validate() reports any error
        """
        errors = self.validate()
        if errors:
            raise ConfigValidationError(errors)


def load_config(path: Optional[Path] = None) -> PSSConfig:
    """Load config from file or return defaults."""
    if path and Path(path).exists():
        return PSSConfig.load(path)

    search_paths = [
        Path('./pss.yml'),
        Path('./pss.yaml'),
        Path.home() / '.pss' / 'config.yml',
    ]

    for p in search_paths:
        if p.exists():
            return PSSConfig.load(p)

    return PSSConfig()


def generate_default_config() -> str:
    """Generate default config as YAML."""
    return """# PSS-Live Configuration
version: 1

listener:
  host: 0.0.0.0
  port: 6000
  buffer_size: 65535
  recv_timeout: 1.0

publisher:
  queue_size: 256

logging:
  level: INFO

exporters:
  prometheus:
    enabled: false
    port: 9090
    prefix: pss_live
"""
