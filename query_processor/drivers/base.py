"""Base driver interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..catalog.schema import ResultMetadata
from ..query import NativeQuery, QueryBody
from .cursor import RowCursor


class DriverFeature(Enum):
    """Features a driver may support."""

    FOREIGN_KEYS = "foreign_keys"
    NATIVE_PARAMETERS = "native_parameters"
    STREAMING = "streaming"


@dataclass
class ColumnMetadata:
    """Metadata about a physical column."""

    name: str
    data_type: str
    nullable: bool
    primary_key: bool = False


@dataclass
class TableMetadata:
    """Metadata about a physical table."""

    schema_name: str
    table_name: str
    columns: List[ColumnMetadata]


class Driver(ABC):
    """Compiles abstract query bodies and executes native queries."""

    def __init__(self, name: str, config: Dict[str, Any]):
        """Initialize driver.

        Args:
            name: Unique name of the database this driver serves
            config: Driver-specific configuration
        """
        self.name = name
        self.config = config
        self._connected = False

    @abstractmethod
    def connect(self) -> None:
        """Establish connection to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Close connection to the database."""
        pass

    @abstractmethod
    def get_features(self) -> List[DriverFeature]:
        """Return list of features supported by this driver."""
        pass

    @abstractmethod
    def compile(self, body: QueryBody) -> NativeQuery:
        """Compile an abstract query body into a native query.

        Raises:
            CompilationError: If the body references unknown tables or fields
        """
        pass

    @abstractmethod
    def execute(self, native: NativeQuery) -> Tuple[ResultMetadata, RowCursor]:
        """Execute a native query.

        Returns:
            Result column metadata and a lazy, single-pass row cursor. The
            caller owns the cursor and must close it.

        Raises:
            QueryExecutionError: If the database rejects or fails the query
        """
        pass

    @abstractmethod
    def list_schemas(self) -> List[str]:
        """List all available schemas."""
        pass

    @abstractmethod
    def list_tables(self, schema: str) -> List[str]:
        """List all tables in a schema."""
        pass

    @abstractmethod
    def get_table_metadata(self, schema: str, table: str) -> TableMetadata:
        """Get column metadata for a table."""
        pass

    def supports(self, feature: DriverFeature) -> bool:
        return feature in self.get_features()

    def is_connected(self) -> bool:
        return self._connected

    def ensure_connected(self) -> None:
        """Connect if no connection is open yet."""
        if not self.is_connected():
            self.connect()
            self._connected = True

    def __enter__(self):
        """Context manager entry."""
        self.ensure_connected()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.disconnect()
        self._connected = False
        return False

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name})"


def native_params(native: NativeQuery) -> Optional[List[Any]]:
    """Bound parameters in the form DB-API drivers expect."""
    if not native.params:
        return None
    return list(native.params)
