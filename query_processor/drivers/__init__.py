"""Database drivers."""

from .base import ColumnMetadata, Driver, DriverFeature, TableMetadata
from .cursor import RowCursor
from .sql import SqlDriver
from .duckdb import DuckDBDriver
from .postgresql import PostgreSQLDriver
from .registry import DRIVER_TYPES, DriverRegistry, create_driver

__all__ = [
    "ColumnMetadata",
    "Driver",
    "DriverFeature",
    "TableMetadata",
    "RowCursor",
    "SqlDriver",
    "DuckDBDriver",
    "PostgreSQLDriver",
    "DRIVER_TYPES",
    "DriverRegistry",
    "create_driver",
]
