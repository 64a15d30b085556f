"""Configuration management."""

from .config import (
    Config,
    DatabaseConfig,
    ExecutorConfig,
    LoggingConfig,
    StreamingConfig,
    TimezoneConfig,
    load_config,
    parse_config,
)

__all__ = [
    "Config",
    "DatabaseConfig",
    "ExecutorConfig",
    "LoggingConfig",
    "StreamingConfig",
    "TimezoneConfig",
    "load_config",
    "parse_config",
]
