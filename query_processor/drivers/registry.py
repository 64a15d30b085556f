"""Driver lookup by database id and driver construction by type tag."""

import logging
import threading
from typing import Any, Dict, Iterator, Optional, Type

from ..catalog import Catalog
from ..config.config import DatabaseConfig
from ..errors import ConfigurationError
from .base import Driver
from .duckdb import DuckDBDriver
from .postgresql import PostgreSQLDriver

logger = logging.getLogger(__name__)

DRIVER_TYPES: Dict[str, Type[Driver]] = {
    "duckdb": DuckDBDriver,
    "postgresql": PostgreSQLDriver,
}


def create_driver(
    database: DatabaseConfig,
    catalog: Optional[Catalog] = None,
    batch_size: Optional[int] = None,
) -> Driver:
    """Instantiate the driver registered for ``database.type``."""
    driver_cls = DRIVER_TYPES.get(database.type)
    if driver_cls is None:
        raise ConfigurationError(f"Unsupported driver type: {database.type}")
    config = dict(database.config)
    if batch_size is not None:
        config.setdefault("batch_size", batch_size)
    return driver_cls(str(database.id), config, catalog)


class DriverRegistry:
    """Maps database ids to drivers; populated at startup, read per query."""

    def __init__(self):
        self._drivers: Dict[Any, Driver] = {}
        self._lock = threading.Lock()

    def register(self, database_id: Any, driver: Driver) -> None:
        with self._lock:
            self._drivers[database_id] = driver

    def get(self, database_id: Any) -> Driver:
        """Return the driver of a database.

        Raises:
            ConfigurationError: If no driver is registered for the id
        """
        driver = self._drivers.get(database_id)
        if driver is None:
            raise ConfigurationError(f"No driver registered for database {database_id!r}")
        return driver

    def close_all(self) -> None:
        """Disconnect every registered driver."""
        for database_id, driver in list(self._drivers.items()):
            try:
                driver.disconnect()
            except Exception as e:
                logger.warning(f"Failed to disconnect database {database_id}: {e}")

    def __contains__(self, database_id: Any) -> bool:
        return database_id in self._drivers

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._drivers))

    def __len__(self) -> int:
        return len(self._drivers)

    def __repr__(self) -> str:
        return f"DriverRegistry(databases={len(self._drivers)})"
