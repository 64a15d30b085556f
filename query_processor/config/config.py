"""Configuration management for the query processor."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, Mapping, Optional, Type, TypeVar
import yaml
from pathlib import Path

from ..errors import ConfigurationError

T = TypeVar("T")


@dataclass
class DatabaseConfig:
    """Configuration for a single database."""

    id: Any
    type: str  # "duckdb", "postgresql"
    config: Dict[str, Any]


@dataclass
class ExecutorConfig:
    """Configuration for query execution."""

    batch_size: int = 10000


@dataclass
class StreamingConfig:
    """Configuration for streamed results."""

    default_format: str = "json"


@dataclass
class TimezoneConfig:
    """Timezones reported with query results."""

    results_timezone: str = "UTC"
    requested_timezone: Optional[str] = None


@dataclass
class LoggingConfig:
    """Logging setup."""

    level: str = "INFO"
    structured: bool = False
    log_file: Optional[str] = None


@dataclass
class Config:
    """Main configuration class."""

    databases: Dict[Any, DatabaseConfig] = field(default_factory=dict)
    executor: ExecutorConfig = field(default_factory=ExecutorConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    timezone: TimezoneConfig = field(default_factory=TimezoneConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    metadata: Dict[str, Any] = field(default_factory=dict)


def load_config(config_path: str) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Parsed configuration

    Example YAML format:
        databases:
          1:
            type: duckdb
            path: /data/sample.duckdb
            read_only: true

          2:
            type: postgresql
            host: localhost
            port: 5432
            database: mydb
            user: user
            password: pass
            schemas: [public]

        executor:
          batch_size: 10000

        streaming:
          default_format: csv

        timezone:
          results_timezone: UTC
          requested_timezone: Europe/Berlin

        logging:
          level: DEBUG
          structured: true

        metadata:
          tables: [...]
          dimensions: [...]
          field_values: [...]
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f)

    return parse_config(data or {})


def parse_config(data: Mapping[str, Any]) -> Config:
    """Build a Config from already-parsed YAML data."""
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration root must be a mapping")
    known = {"databases", "executor", "streaming", "timezone", "logging", "metadata"}
    unknown = set(data) - known
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

    databases = {}
    for database_id, db_config in (data.get("databases") or {}).items():
        db_config = dict(db_config or {})
        if "type" not in db_config:
            raise ConfigurationError(f"Database {database_id!r} is missing 'type'")
        db_type = db_config.pop("type")
        databases[database_id] = DatabaseConfig(id=database_id, type=db_type, config=db_config)

    return Config(
        databases=databases,
        executor=_section(ExecutorConfig, data.get("executor")),
        streaming=_section(StreamingConfig, data.get("streaming")),
        timezone=_section(TimezoneConfig, data.get("timezone")),
        logging=_section(LoggingConfig, data.get("logging")),
        metadata=dict(data.get("metadata") or {}),
    )


def _section(section_cls: Type[T], data: Optional[Mapping[str, Any]]) -> T:
    """Build a config section, rejecting unknown keys."""
    data = dict(data or {})
    allowed = {f.name for f in fields(section_cls)}
    unknown = set(data) - allowed
    if unknown:
        raise ConfigurationError(
            f"Unknown keys for {section_cls.__name__}: {sorted(unknown)}"
        )
    return section_cls(**data)
