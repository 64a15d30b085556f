"""Shared fakes and sample metadata for query processor tests."""

import io
from typing import Any, Dict, Iterable, List, Optional

from query_processor.catalog import (
    BaseType,
    Catalog,
    Column,
    Dimension,
    DimensionType,
    Field,
    FieldValues,
    Table,
)
from query_processor.drivers import RowCursor
from query_processor.errors import MetadataStoreError, QueryExecutionError
from query_processor.query import NativeQuery

VENUES_TABLE = 1
CATEGORIES_TABLE = 2

VENUE_ID = 10
VENUE_CATEGORY_ID = 11
VENUE_NAME = 12
VENUE_PRICE = 13
CATEGORY_ID = 20
CATEGORY_NAME = 21

VENUE_ROWS = [
    (1, "Red Medicine", 4, 3),
    (2, "Stout Burgers & Beers", 11, 2),
    (3, "The Apple Pan", 11, 2),
    (4, "Wurstkuche", 29, 2),
    (5, "Brite Spot Family Restaurant", 20, 2),
]

CATEGORY_ROWS = [
    (4, "Asian"),
    (11, "Burger"),
    (20, "Breakfast / Brunch"),
    (29, "German"),
]


class RecordingSink(io.StringIO):
    """StringIO that keeps its text and counts closes."""

    def __init__(self):
        super().__init__()
        self.close_count = 0
        self.text = ""

    def close(self):
        if not self.closed:
            self.text = self.getvalue()
        self.close_count += 1
        super().close()


class CountingStore:
    """Metadata store wrapper counting batched calls."""

    def __init__(self, store):
        self.store = store
        self.dimension_calls: List[List[int]] = []
        self.hydrate_calls = 0

    def dimensions_for(self, field_ids: Iterable[int]):
        ids = list(field_ids)
        self.dimension_calls.append(ids)
        return self.store.dimensions_for(ids)

    def hydrate_columns(self, columns):
        self.hydrate_calls += 1
        return self.store.hydrate_columns(columns)


class UnreachableStore:
    """Metadata store whose hydration always fails."""

    def dimensions_for(self, field_ids):
        return {}

    def hydrate_columns(self, columns):
        raise MetadataStoreError("metadata store unreachable")


def build_venues_catalog(category_dimension: Optional[str] = "external") -> Catalog:
    """Venues and categories tables; CATEGORY_ID is a foreign key to categories.ID."""
    catalog = Catalog()
    catalog.add_table(Table(id=VENUES_TABLE, name="venues", schema_name="main", database=1))
    catalog.add_table(
        Table(id=CATEGORIES_TABLE, name="categories", schema_name="main", database=1)
    )
    catalog.add_field(Field(VENUE_ID, VENUES_TABLE, "ID", BaseType.BIG_INTEGER, special_type="type/PK"))
    catalog.add_field(
        Field(
            VENUE_CATEGORY_ID,
            VENUES_TABLE,
            "CATEGORY_ID",
            BaseType.INTEGER,
            special_type="type/FK",
            fk_target_field_id=CATEGORY_ID,
        )
    )
    catalog.add_field(Field(VENUE_NAME, VENUES_TABLE, "NAME", BaseType.TEXT))
    catalog.add_field(Field(VENUE_PRICE, VENUES_TABLE, "PRICE", BaseType.INTEGER))
    catalog.add_field(Field(CATEGORY_ID, CATEGORIES_TABLE, "ID", BaseType.BIG_INTEGER))
    catalog.add_field(Field(CATEGORY_NAME, CATEGORIES_TABLE, "NAME", BaseType.TEXT))

    if category_dimension == "external":
        catalog.add_dimension(
            Dimension(
                field_id=VENUE_CATEGORY_ID,
                type=DimensionType.EXTERNAL,
                name="Category",
                human_readable_field_id=CATEGORY_NAME,
            )
        )
    elif category_dimension == "internal":
        catalog.add_dimension(
            Dimension(field_id=VENUE_CATEGORY_ID, type=DimensionType.INTERNAL, name="Foo")
        )
        catalog.set_field_values(
            FieldValues(
                field_id=VENUE_CATEGORY_ID,
                values=[4, 11, 29, 20],
                human_readable_values=["Foo", "Bar", "Baz", "Qux"],
            )
        )
    return catalog


def venue_columns() -> List[Column]:
    """Raw result columns of ``SELECT ID, NAME, CATEGORY_ID, PRICE FROM venues``."""
    return [
        Column(name="ID", id=VENUE_ID, table_id=VENUES_TABLE, base_type="type/BigInteger"),
        Column(name="NAME", id=VENUE_NAME, table_id=VENUES_TABLE, base_type="type/Text"),
        Column(
            name="CATEGORY_ID",
            id=VENUE_CATEGORY_ID,
            table_id=VENUES_TABLE,
            base_type="type/Integer",
            special_type="type/FK",
        ),
        Column(name="PRICE", id=VENUE_PRICE, table_id=VENUES_TABLE, base_type="type/Integer"),
    ]


def column_summary(cols: List[Column], *keys: str) -> List[Dict[str, Any]]:
    """Selected attributes of each column, for compact assertions."""
    return [{key: getattr(col, key) for key in keys} for col in cols]


class FakeDriver:
    """Driver returning canned metadata and rows, recording its calls."""

    def __init__(self, metadata, rows, fail_after: Optional[int] = None, compile_error=None):
        self.metadata = metadata
        self.rows = rows
        self.fail_after = fail_after
        self.compile_error = compile_error
        self.compiled: List[Any] = []
        self.executed: List[Any] = []
        self.cursors: List[Any] = []

    def compile(self, body):
        self.compiled.append(body)
        if self.compile_error is not None:
            raise self.compile_error
        return NativeQuery("SELECT fake", field_refs=body.fields)

    def execute(self, native):
        self.executed.append(native)
        cursor = RowCursor(self._rows())
        self.cursors.append(cursor)
        return self.metadata, cursor

    def _rows(self):
        for index, row in enumerate(self.rows):
            if self.fail_after is not None and index >= self.fail_after:
                raise QueryExecutionError("connection reset while fetching")
            yield list(row)


def seed_venues(connection) -> None:
    """Create and fill main.categories and main.venues."""
    connection.execute(
        """
        CREATE TABLE main.categories (
            "ID" BIGINT PRIMARY KEY,
            "NAME" VARCHAR
        )
        """
    )
    connection.execute(
        """
        CREATE TABLE main.venues (
            "ID" BIGINT PRIMARY KEY,
            "NAME" VARCHAR,
            "CATEGORY_ID" INTEGER,
            "PRICE" INTEGER
        )
        """
    )
    connection.executemany("INSERT INTO main.categories VALUES (?, ?)", CATEGORY_ROWS)
    connection.executemany("INSERT INTO main.venues VALUES (?, ?, ?, ?)", VENUE_ROWS)
