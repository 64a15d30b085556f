"""Tests for the qproc command line."""

import csv
import io
import json
import logging

import duckdb
import pytest
import yaml
from click.testing import CliRunner

from query_processor.cli.qproc import QueryRuntime, cli, load_query
from query_processor.config import parse_config
from query_processor.query import QueryType
from tests.helpers import (
    CATEGORY_NAME,
    VENUE_CATEGORY_ID,
    VENUE_ID,
    VENUE_NAME,
    VENUES_TABLE,
    seed_venues,
)

METADATA = {
    "tables": [
        {
            "id": 1,
            "name": "venues",
            "schema": "main",
            "database": 1,
            "fields": [
                {"id": 10, "name": "ID", "base_type": "type/BigInteger"},
                {"id": 11, "name": "CATEGORY_ID", "base_type": "type/Integer",
                 "special_type": "type/FK", "fk_target_field_id": 20},
                {"id": 12, "name": "NAME", "base_type": "type/Text"},
                {"id": 13, "name": "PRICE", "base_type": "type/Integer"},
            ],
        },
        {
            "id": 2,
            "name": "categories",
            "schema": "main",
            "database": 1,
            "fields": [
                {"id": 20, "name": "ID", "base_type": "type/BigInteger"},
                {"id": 21, "name": "NAME", "base_type": "type/Text"},
            ],
        },
    ],
    "dimensions": [
        {"field_id": 11, "type": "external", "name": "Category",
         "human_readable_field_id": 21},
    ],
}

VENUES_QUERY = {
    "type": "query",
    "database": 1,
    "query": {
        "source-table": VENUES_TABLE,
        "fields": [["field-id", VENUE_ID], ["field-id", VENUE_NAME], ["field-id", VENUE_CATEGORY_ID]],
        "order-by": [["asc", ["field-id", VENUE_ID]]],
    },
}


@pytest.fixture(autouse=True)
def restore_logging():
    """The command reconfigures the root logger; put it back afterwards."""
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def config_file(tmp_path):
    """Config pointing at a seeded DuckDB file."""
    db_path = tmp_path / "venues.duckdb"
    connection = duckdb.connect(str(db_path))
    seed_venues(connection)
    connection.close()

    config = {
        "databases": {1: {"type": "duckdb", "path": str(db_path)}},
        "logging": {"level": "WARNING"},
        "metadata": METADATA,
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config))
    return str(path)


@pytest.fixture
def query_file(tmp_path):
    path = tmp_path / "query.json"
    path.write_text(json.dumps(VENUES_QUERY))
    return str(path)


def test_csv_to_stdout(config_file, query_file):
    runner = CliRunner()

    result = runner.invoke(cli, [query_file, "-c", config_file, "-f", "csv"])

    assert result.exit_code == 0, result.output
    rows = list(csv.reader(io.StringIO(result.stdout)))
    assert rows[0] == ["ID", "Name", "Category ID", "Category"]
    assert rows[1] == ["1", "Red Medicine", "4", "Asian"]
    assert len(rows) == 6


def test_json_to_file(config_file, query_file, tmp_path):
    output = tmp_path / "out.json"
    runner = CliRunner()

    result = runner.invoke(cli, [query_file, "-c", config_file, "-o", str(output)])

    assert result.exit_code == 0, result.output
    document = json.loads(output.read_text())
    assert document["status"] == "completed"
    assert document["row_count"] == 5
    assert document["data"]["rows"][0] == [1, "Red Medicine", 4, "Asian"]
    assert document["data"]["cols"][3]["remapped_from"] == "CATEGORY_ID"
    assert document["data"]["results_timezone"] == "UTC"


def test_default_config_runs_native_queries(tmp_path):
    path = tmp_path / "query.yaml"
    path.write_text("type: native\ndatabase: 1\nnative: SELECT 42 AS answer\n")
    runner = CliRunner()

    result = runner.invoke(cli, [str(path), "-f", "json"])

    assert result.exit_code == 0, result.output
    document = json.loads(result.stdout)
    assert document["data"]["rows"] == [[42]]


def test_unknown_database_is_reported(config_file, tmp_path):
    path = tmp_path / "query.json"
    path.write_text(json.dumps({"type": "native", "database": 7, "native": "SELECT 1"}))
    runner = CliRunner()

    result = runner.invoke(cli, [str(path), "-c", config_file])

    assert result.exit_code == 1
    assert "error:" in result.output


def test_malformed_query_file(config_file, tmp_path):
    path = tmp_path / "query.json"
    path.write_text("{not json")
    runner = CliRunner()

    result = runner.invoke(cli, [str(path), "-c", config_file])

    assert result.exit_code == 1
    assert "error:" in result.output


def test_load_query_yaml(tmp_path):
    path = tmp_path / "query.yml"
    path.write_text(yaml.safe_dump(VENUES_QUERY))

    query = load_query(str(path))

    assert query.type is QueryType.QUERY
    assert len(query.body.fields) == 3


def test_runtime_wires_catalog_and_drivers():
    config = parse_config(
        {"databases": {1: {"type": "duckdb", "path": ":memory:"}}, "metadata": METADATA}
    )

    runtime = QueryRuntime(config)
    try:
        assert 1 in runtime.drivers
        assert runtime.catalog.get_field(CATEGORY_NAME).name == "NAME"
        assert runtime.pipeline.describe()[-1] == "NativeCompilation"
    finally:
        runtime.close()
