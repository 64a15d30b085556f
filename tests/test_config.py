"""Tests for configuration loading."""

import tempfile
from pathlib import Path

import pytest

from query_processor.config import Config, DatabaseConfig, load_config, parse_config
from query_processor.errors import ConfigurationError


def _write_config(text: str) -> str:
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(text)
        return f.name


def test_load_full_config():
    config_text = """
databases:
  1:
    type: duckdb
    path: ":memory:"
  warehouse:
    type: postgresql
    host: localhost
    port: 5432
    database: analytics
executor:
  batch_size: 500
streaming:
  default_format: csv
timezone:
  results_timezone: Europe/Berlin
  requested_timezone: America/New_York
logging:
  level: DEBUG
  structured: true
metadata:
  tables: []
"""
    temp_path = _write_config(config_text)
    try:
        config = load_config(temp_path)
    finally:
        Path(temp_path).unlink()

    assert set(config.databases) == {1, "warehouse"}
    duck = config.databases[1]
    assert isinstance(duck, DatabaseConfig)
    assert duck.type == "duckdb"
    assert duck.config == {"path": ":memory:"}
    assert config.databases["warehouse"].config["port"] == 5432
    assert config.executor.batch_size == 500
    assert config.streaming.default_format == "csv"
    assert config.timezone.results_timezone == "Europe/Berlin"
    assert config.timezone.requested_timezone == "America/New_York"
    assert config.logging.level == "DEBUG"
    assert config.logging.structured is True
    assert config.metadata == {"tables": []}


def test_load_empty_config_uses_defaults():
    temp_path = _write_config("")
    try:
        config = load_config(temp_path)
    finally:
        Path(temp_path).unlink()

    assert config.databases == {}
    assert config.executor.batch_size == 10000
    assert config.streaming.default_format == "json"
    assert config.timezone.results_timezone == "UTC"
    assert config.timezone.requested_timezone is None
    assert config.logging.level == "INFO"


def test_load_missing_config():
    with pytest.raises(FileNotFoundError):
        load_config("/nonexistent/config.yaml")


@pytest.mark.parametrize(
    "data",
    [
        {"optimizer": {}},
        {"executor": {"max_threads": 8}},
        {"databases": {1: {"path": ":memory:"}}},
        ["databases"],
    ],
)
def test_invalid_configs(data):
    with pytest.raises(ConfigurationError):
        parse_config(data)


def test_default_config_object():
    config = Config()

    assert config.databases == {}
    assert config.metadata == {}
