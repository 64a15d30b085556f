"""In-memory metadata store: tables, fields, dimensions and value tables."""

import logging
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Protocol

from ..errors import ConfigurationError, MetadataStoreError
from .schema import (
    BaseType,
    Column,
    Dimension,
    DimensionType,
    Field,
    FieldValues,
    Table,
)

if TYPE_CHECKING:
    from ..drivers.base import Driver

logger = logging.getLogger(__name__)


class MetadataStore(Protocol):
    """Lookups the pipeline needs from a metadata store.

    Implementations must be safe for concurrent reads.
    """

    def dimensions_for(self, field_ids: Iterable[int]) -> Dict[int, Dimension]:
        """Return the dimension of every given field that has one."""
        ...

    def hydrate_columns(self, columns: List[Column]) -> List[Column]:
        """Return copies of ``columns`` with dimension and value tables embedded."""
        ...


class Catalog:
    """Central metadata catalog, usable as the pipeline's metadata store."""

    def __init__(self):
        """Initialize an empty catalog."""
        self.tables: Dict[int, Table] = {}
        self.fields: Dict[int, Field] = {}
        self.dimensions: Dict[int, Dimension] = {}  # field id -> Dimension
        self.field_values: Dict[int, FieldValues] = {}  # field id -> FieldValues
        self._lock = threading.RLock()

    def add_table(self, table: Table) -> None:
        with self._lock:
            self.tables[table.id] = table

    def add_field(self, field: Field) -> None:
        """Register a field; its table must already be known."""
        with self._lock:
            if field.table_id not in self.tables:
                raise ConfigurationError(
                    f"Field {field.id} references unknown table {field.table_id}"
                )
            self.fields[field.id] = field

    def add_dimension(self, dimension: Dimension) -> None:
        """Register a dimension; a field carries at most one."""
        with self._lock:
            if dimension.field_id not in self.fields:
                raise ConfigurationError(
                    f"Dimension '{dimension.name}' references unknown field {dimension.field_id}"
                )
            if dimension.field_id in self.dimensions:
                raise ConfigurationError(f"Field {dimension.field_id} already has a dimension")
            hr_field_id = dimension.human_readable_field_id
            if dimension.is_external and hr_field_id not in self.fields:
                raise ConfigurationError(
                    f"Dimension '{dimension.name}' references unknown field {hr_field_id}"
                )
            self.dimensions[dimension.field_id] = dimension

    def set_field_values(self, values: FieldValues) -> None:
        with self._lock:
            if values.field_id not in self.fields:
                raise ConfigurationError(f"Field values reference unknown field {values.field_id}")
            self.field_values[values.field_id] = values

    def get_table(self, table_id: int) -> Optional[Table]:
        return self.tables.get(table_id)

    def get_field(self, field_id: int) -> Optional[Field]:
        return self.fields.get(field_id)

    def require_table(self, table_id: int) -> Table:
        table = self.tables.get(table_id)
        if table is None:
            raise MetadataStoreError(f"Unknown table id {table_id}")
        return table

    def require_field(self, field_id: int) -> Field:
        field = self.fields.get(field_id)
        if field is None:
            raise MetadataStoreError(f"Unknown field id {field_id}")
        return field

    def fields_for_table(self, table_id: int) -> List[Field]:
        """List a table's fields in id order."""
        fields: List[Field] = []
        for field_id in sorted(self.fields):
            field = self.fields[field_id]
            if field.table_id == table_id:
                fields.append(field)
        return fields

    def dimensions_for(self, field_ids: Iterable[int]) -> Dict[int, Dimension]:
        """Batched dimension lookup for exactly the given fields."""
        result: Dict[int, Dimension] = {}
        for field_id in field_ids:
            dimension = self.dimensions.get(field_id)
            if dimension is not None:
                result[field_id] = dimension
        return result

    def hydrate_columns(self, columns: List[Column]) -> List[Column]:
        """Embed dimension and value-table info in copies of ``columns``.

        Columns without an id (computed or synthetic) are returned as is.
        """
        ids = [col.id for col in columns if col.id is not None]
        dimensions = self.dimensions_for(ids)
        values = {field_id: self.field_values.get(field_id) for field_id in dimensions}
        hydrated: List[Column] = []
        for col in columns:
            dimension = dimensions.get(col.id) if col.id is not None else None
            if dimension is None:
                hydrated.append(col)
                continue
            hydrated.append(replace(col, dimension=dimension, values=values.get(col.id)))
        return hydrated

    def sync_database(self, database_id: Any, driver: "Driver") -> List[Table]:
        """Discover tables and columns of a database and register them.

        Ids are assigned after the highest ids already present. Tables
        already registered for this database (same schema and name) are
        skipped.
        """
        with self._lock:
            existing = {
                (table.schema_name, table.name.lower())
                for table in self.tables.values()
                if table.database == database_id
            }
            next_table_id = max(self.tables, default=0) + 1
            next_field_id = max(self.fields, default=0) + 1
            synced: List[Table] = []
            for schema_name in driver.list_schemas():
                for table_name in driver.list_tables(schema_name):
                    if (schema_name, table_name.lower()) in existing:
                        continue
                    metadata = driver.get_table_metadata(schema_name, table_name)
                    table = Table(
                        id=next_table_id,
                        name=table_name,
                        schema_name=schema_name,
                        database=database_id,
                    )
                    next_table_id += 1
                    self.add_table(table)
                    for col_meta in metadata.columns:
                        special_type = "type/PK" if col_meta.primary_key else None
                        self.add_field(
                            Field(
                                id=next_field_id,
                                table_id=table.id,
                                name=col_meta.name,
                                base_type=self._map_type(col_meta.data_type),
                                special_type=special_type,
                            )
                        )
                        next_field_id += 1
                    synced.append(table)
            logger.info(f"Synced {len(synced)} tables for database {database_id}")
            return synced

    @classmethod
    def load_from_config(cls, data: Optional[Mapping[str, Any]]) -> "Catalog":
        """Build a catalog from the ``metadata`` section of the config file.

        Example YAML format:
            metadata:
              tables:
                - id: 1
                  name: venues
                  schema: main
                  database: 1
                  fields:
                    - {id: 11, name: CATEGORY_ID, base_type: type/Integer,
                       special_type: type/FK, fk_target_field_id: 20}
              dimensions:
                - {field_id: 11, type: external, name: Category,
                   human_readable_field_id: 21}
              field_values:
                - {field_id: 12, values: [1, 2], human_readable_values: [a, b]}
        """
        catalog = cls()
        if not data:
            return catalog
        try:
            for table_data in data.get("tables", []):
                table = Table(
                    id=table_data["id"],
                    name=table_data["name"],
                    schema_name=table_data.get("schema"),
                    database=table_data.get("database"),
                    display_name=table_data.get("display_name"),
                )
                catalog.add_table(table)
                for field_data in table_data.get("fields", []):
                    catalog.add_field(cls._field_from_config(table.id, field_data))
            for dim_data in data.get("dimensions", []):
                catalog.add_dimension(
                    Dimension(
                        field_id=dim_data["field_id"],
                        type=DimensionType(dim_data.get("type", "internal")),
                        name=dim_data["name"],
                        human_readable_field_id=dim_data.get("human_readable_field_id"),
                    )
                )
            for values_data in data.get("field_values", []):
                catalog.set_field_values(
                    FieldValues(
                        field_id=values_data["field_id"],
                        values=values_data.get("values", []),
                        human_readable_values=values_data.get("human_readable_values", []),
                    )
                )
        except (KeyError, ValueError) as e:
            if isinstance(e, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid metadata configuration: {e}") from e
        return catalog

    @staticmethod
    def _field_from_config(table_id: int, data: Mapping[str, Any]) -> Field:
        return Field(
            id=data["id"],
            table_id=table_id,
            name=data["name"],
            base_type=BaseType(data.get("base_type", BaseType.UNKNOWN.value)),
            display_name=data.get("display_name"),
            special_type=data.get("special_type"),
            fk_target_field_id=data.get("fk_target_field_id"),
            description=data.get("description"),
            visibility_type=data.get("visibility_type", "normal"),
        )

    def _map_type(self, type_str: str) -> BaseType:
        """Map database type string to a base type."""
        type_str = type_str.upper()

        # Integer types
        if "INT" in type_str or "SERIAL" in type_str:
            if "BIG" in type_str or "HUGE" in type_str:
                return BaseType.BIG_INTEGER
            return BaseType.INTEGER

        # Float types
        if "FLOAT" in type_str or "REAL" in type_str or "DOUBLE" in type_str:
            return BaseType.FLOAT
        if "NUMERIC" in type_str or "DECIMAL" in type_str:
            return BaseType.DECIMAL

        # String types
        if "CHAR" in type_str or "TEXT" in type_str or "STRING" in type_str:
            return BaseType.TEXT

        if "BOOL" in type_str:
            return BaseType.BOOLEAN

        # Date/Time
        if "TIMESTAMP" in type_str:
            return BaseType.DATETIME
        if "DATE" in type_str:
            return BaseType.DATE
        if "TIME" in type_str:
            return BaseType.TIME

        return BaseType.UNKNOWN

    def __repr__(self) -> str:
        return (
            f"Catalog(tables={len(self.tables)}, fields={len(self.fields)}, "
            f"dimensions={len(self.dimensions)})"
        )
