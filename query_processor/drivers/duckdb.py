"""DuckDB driver implementation."""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import logging

import duckdb
import pyarrow as pa

from ..catalog import Catalog
from ..errors import QueryExecutionError
from ..query import NativeQuery
from .base import ColumnMetadata, DriverFeature, TableMetadata, native_params
from .sql import SqlDriver

logger = logging.getLogger(__name__)


class DuckDBDriver(SqlDriver):
    """DuckDB driver streaming results as Arrow record batches."""

    dialect = "duckdb"

    def __init__(self, name: str, config: Dict[str, Any], catalog: Optional[Catalog] = None):
        """Initialize DuckDB driver.

        Config should include:
            - path: Path to DuckDB database file (or :memory: for in-memory)
            - read_only: Whether to open in read-only mode (default: True for files)
            - batch_size: Rows per fetched record batch (default: 10000)
        """
        super().__init__(name, config, catalog)
        self.connection = None
        self.db_path = config.get("path", ":memory:")
        self.read_only = config.get("read_only", self.db_path != ":memory:")

    def connect(self) -> None:
        """Establish connection to DuckDB."""
        logger.info(f"Connecting to DuckDB at '{self.db_path}'")
        try:
            self.connection = duckdb.connect(self.db_path, read_only=self.read_only)
        except duckdb.Error as e:
            logger.error(f"Failed to connect to DuckDB {self.name}: {e}")
            raise ConnectionError(f"DuckDB connection failed: {e}") from e
        self._connected = True
        logger.info(f"Successfully connected to DuckDB: {self.name}")

    def disconnect(self) -> None:
        """Close DuckDB connection."""
        if self.connection:
            self.connection.close()
            logger.info(f"Disconnected from DuckDB: {self.name}")
            self.connection = None
            self._connected = False

    def get_features(self) -> List[DriverFeature]:
        return [
            DriverFeature.FOREIGN_KEYS,
            DriverFeature.NATIVE_PARAMETERS,
            DriverFeature.STREAMING,
        ]

    def list_schemas(self) -> List[str]:
        """List schemas of the current database."""
        self.ensure_connected()
        result = self.connection.execute(
            """
            SELECT schema_name
            FROM information_schema.schemata
            WHERE catalog_name = current_database()
            ORDER BY schema_name
            """
        ).fetchall()
        schemas = []
        for row in result:
            if row[0] in ("information_schema", "pg_catalog"):
                continue
            schemas.append(row[0])
        return schemas

    def list_tables(self, schema: str) -> List[str]:
        """List tables in a schema."""
        self.ensure_connected()
        result = self.connection.execute(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = ? AND table_type = 'BASE TABLE'
              AND table_catalog = current_database()
            ORDER BY table_name
            """,
            [schema],
        ).fetchall()
        tables = []
        for row in result:
            tables.append(row[0])
        return tables

    def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        """Get table metadata, flagging primary key columns."""
        self.ensure_connected()
        result = self.connection.execute(
            """
            SELECT
                column_name,
                data_type,
                is_nullable
            FROM information_schema.columns
            WHERE table_schema = ? AND table_name = ?
              AND table_catalog = current_database()
            ORDER BY ordinal_position
            """,
            [schema, table],
        ).fetchall()
        primary_keys = self._primary_key_columns(schema, table)

        columns = []
        for row in result:
            columns.append(
                ColumnMetadata(
                    name=row[0],
                    data_type=row[1],
                    nullable=row[2] == "YES",
                    primary_key=row[0] in primary_keys,
                )
            )

        return TableMetadata(schema_name=schema, table_name=table, columns=columns)

    def _primary_key_columns(self, schema: str, table: str) -> List[str]:
        result = self.connection.execute(
            """
            SELECT constraint_column_names
            FROM duckdb_constraints()
            WHERE schema_name = ? AND table_name = ? AND constraint_type = 'PRIMARY KEY'
            """,
            [schema, table],
        ).fetchall()
        names: List[str] = []
        for row in result:
            names.extend(row[0])
        return names

    def _execute_batches(
        self, native: NativeQuery
    ) -> Tuple[pa.Schema, Iterator[pa.RecordBatch], Callable[[], None]]:
        """Execute on a dedicated cursor and stream record batches from it."""
        cursor = self.connection.cursor()
        try:
            cursor.execute(native.query, native_params(native))
            reader = cursor.fetch_record_batch(self.batch_size)
        except duckdb.Error as e:
            cursor.close()
            logger.error(f"Query execution failed on {self.name}: {e}")
            raise QueryExecutionError(f"DuckDB query failed: {e}") from e

        def release() -> None:
            cursor.close()

        return reader.schema, self._read_batches(reader), release

    def _read_batches(self, reader: pa.RecordBatchReader) -> Iterator[pa.RecordBatch]:
        try:
            while True:
                try:
                    batch = reader.read_next_batch()
                except StopIteration:
                    return
                yield batch
        except (duckdb.Error, pa.ArrowException) as e:
            logger.error(f"Fetching results failed on {self.name}: {e}")
            raise QueryExecutionError(f"DuckDB fetch failed: {e}") from e
