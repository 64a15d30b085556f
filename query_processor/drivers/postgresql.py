"""PostgreSQL driver implementation."""

from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import logging
import uuid

import pyarrow as pa
import psycopg2
from psycopg2 import pool

from ..catalog import Catalog
from ..errors import QueryExecutionError
from ..query import NativeQuery
from .base import ColumnMetadata, DriverFeature, TableMetadata, native_params
from .sql import SqlDriver

logger = logging.getLogger(__name__)


class PostgreSQLDriver(SqlDriver):
    """PostgreSQL driver with connection pooling and server-side cursors."""

    dialect = "postgres"

    def __init__(self, name: str, config: Dict[str, Any], catalog: Optional[Catalog] = None):
        """Initialize PostgreSQL driver.

        Config should include:
            - host: Database host
            - port: Database port
            - database: Database name
            - user: Username
            - password: Password
            - schemas: List of schemas to include (optional)
            - min_connections: Minimum connections in pool (default: 1)
            - max_connections: Maximum connections in pool (default: 5)
        """
        super().__init__(name, config, catalog)
        self.schemas = config.get("schemas", ["public"])
        self.connection = None
        self._pool = None
        self._min_connections = config.get("min_connections", 1)
        self._max_connections = config.get("max_connections", 5)

    def connect(self) -> None:
        """Establish connection pool to PostgreSQL."""
        try:
            logger.info(
                f"Connecting to PostgreSQL database '{self.config['database']}' at {self.config['host']}"
            )
            self._pool = pool.ThreadedConnectionPool(
                self._min_connections,
                self._max_connections,
                host=self.config["host"],
                port=self.config.get("port", 5432),
                database=self.config["database"],
                user=self.config["user"],
                password=self.config["password"],
            )
            self._connected = True
            logger.info(f"Successfully connected to PostgreSQL: {self.name}")
        except psycopg2.Error as e:
            logger.error(f"Failed to connect to PostgreSQL {self.name}: {e}")
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e

    def disconnect(self) -> None:
        """Close all connections in the pool."""
        if self._pool:
            self._pool.closeall()
            logger.info(f"Disconnected from PostgreSQL: {self.name}")
            self._pool = None
            self._connected = False

    def _get_connection(self):
        if not self._pool:
            raise RuntimeError(f"Not connected to {self.name}")
        return self._pool.getconn()

    def _return_connection(self, conn) -> None:
        if self._pool:
            self._pool.putconn(conn)

    def get_features(self) -> List[DriverFeature]:
        return [
            DriverFeature.FOREIGN_KEYS,
            DriverFeature.NATIVE_PARAMETERS,
            DriverFeature.STREAMING,
        ]

    def list_schemas(self) -> List[str]:
        return list(self.schemas)

    def list_tables(self, schema: str) -> List[str]:
        rows = self._fetch_all(
            """
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = %s AND table_type = 'BASE TABLE'
            ORDER BY table_name
            """,
            [schema],
        )
        return [row[0] for row in rows]

    def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        rows = self._fetch_all(
            """
            SELECT c.column_name, c.data_type, c.is_nullable,
                   EXISTS (
                       SELECT 1
                       FROM information_schema.table_constraints tc
                       JOIN information_schema.key_column_usage kcu
                         ON tc.constraint_name = kcu.constraint_name
                        AND tc.table_schema = kcu.table_schema
                       WHERE tc.constraint_type = 'PRIMARY KEY'
                         AND tc.table_schema = c.table_schema
                         AND tc.table_name = c.table_name
                         AND kcu.column_name = c.column_name
                   ) AS is_pk
            FROM information_schema.columns c
            WHERE c.table_schema = %s AND c.table_name = %s
            ORDER BY c.ordinal_position
            """,
            [schema, table],
        )
        columns = []
        for row in rows:
            columns.append(
                ColumnMetadata(
                    name=row[0],
                    data_type=row[1],
                    nullable=row[2] == "YES",
                    primary_key=bool(row[3]),
                )
            )
        return TableMetadata(schema_name=schema, table_name=table, columns=columns)

    def _fetch_all(self, sql: str, params: List[Any]) -> List[Tuple]:
        self.ensure_connected()
        conn = self._get_connection()
        try:
            with conn.cursor() as cursor:
                cursor.execute(sql, params)
                return cursor.fetchall()
        finally:
            conn.rollback()
            self._return_connection(conn)

    def _execute_batches(
        self, native: NativeQuery
    ) -> Tuple[pa.Schema, Iterator[pa.RecordBatch], Callable[[], None]]:
        """Open a named (server-side) cursor so rows are fetched incrementally."""
        conn = self._get_connection()
        cursor = conn.cursor(name=f"qp_{uuid.uuid4().hex}")
        cursor.itersize = self.batch_size

        def release() -> None:
            try:
                cursor.close()
                conn.rollback()
            except psycopg2.Error as e:
                logger.warning(f"Failed to release cursor on {self.name}: {e}")
            finally:
                self._return_connection(conn)

        try:
            cursor.execute(native.query, native_params(native))
            first_rows = cursor.fetchmany(self.batch_size)
        except psycopg2.Error as e:
            release()
            logger.error(f"Query execution failed on {self.name}: {e}")
            raise QueryExecutionError(f"PostgreSQL query failed: {e}") from e

        columns = self._extract_column_names(cursor.description)
        first_batch = self._build_batch(columns, first_rows)
        return first_batch.schema, self._read_batches(cursor, columns, first_batch), release

    def _read_batches(
        self, cursor, columns: List[str], first_batch: pa.RecordBatch
    ) -> Iterator[pa.RecordBatch]:
        if first_batch.num_rows == 0:
            return
        yield first_batch
        try:
            while True:
                rows = cursor.fetchmany(self.batch_size)
                if not rows:
                    break
                yield self._build_batch(columns, rows)
        except psycopg2.Error as e:
            logger.error(f"Fetching results failed on {self.name}: {e}")
            raise QueryExecutionError(f"PostgreSQL fetch failed: {e}") from e

    def _extract_column_names(self, description) -> List[str]:
        """Extract column names from cursor description."""
        columns = []
        for desc in description or []:
            columns.append(desc[0])
        return columns

    def _build_batch(self, columns: List[str], rows: List) -> pa.RecordBatch:
        """Build an Arrow batch; column names may repeat, so build by position."""
        arrays = []
        for index in range(len(columns)):
            arrays.append(pa.array([row[index] for row in rows]))
        return pa.RecordBatch.from_arrays(arrays, names=columns)
