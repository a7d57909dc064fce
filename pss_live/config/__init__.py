"""Configuration management for PSS-Live."""

from .schema import (
    PSSConfig,
    ListenerConfig,
    PublisherConfig,
    LoggingConfig,
    PrometheusConfig,
    ExportersConfig,
    ConfigError,
    ConfigValidationError,
    load_config,
    generate_default_config,
)

__all__ = [
    'PSSConfig',
    'ListenerConfig',
    'PublisherConfig',
    'LoggingConfig',
    'PrometheusConfig',
    'ExportersConfig',
    'ConfigError',
    'ConfigValidationError',
    'load_config',
    'generate_default_config',
]
