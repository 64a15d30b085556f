"""Catalog system: metadata store and result column metadata."""

from .catalog import Catalog, MetadataStore
from .schema import (
    BaseType,
    Column,
    Dimension,
    DimensionType,
    Field,
    FieldValues,
    ResultMetadata,
    Table,
)

__all__ = [
    "BaseType",
    "Catalog",
    "Column",
    "Dimension",
    "DimensionType",
    "Field",
    "FieldValues",
    "MetadataStore",
    "ResultMetadata",
    "Table",
]
