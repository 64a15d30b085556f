"""Fixtures backed by an in-memory DuckDB database."""

import pytest

from query_processor.drivers import DriverRegistry, DuckDBDriver
from tests.helpers import build_venues_catalog, seed_venues


@pytest.fixture
def catalog():
    """Venues catalog with an external Category dimension."""
    return build_venues_catalog()


@pytest.fixture
def duckdb_driver(catalog):
    """In-memory DuckDB driver holding the venues and categories tables."""
    driver = DuckDBDriver("1", {"path": ":memory:", "batch_size": 2}, catalog)
    driver.connect()
    seed_venues(driver.connection)

    yield driver

    driver.disconnect()


@pytest.fixture
def drivers(duckdb_driver):
    registry = DriverRegistry()
    registry.register(1, duckdb_driver)
    return registry
