"""Query model: field references and abstract/native queries."""

from .references import (
    FieldReference,
    FieldById,
    FieldViaForeignKey,
    OrderBy,
    SortDirection,
)
from .query import DatabaseId, NativeQuery, Query, QueryBody, QueryType

__all__ = [
    # References
    "FieldReference",
    "FieldById",
    "FieldViaForeignKey",
    "OrderBy",
    "SortDirection",
    # Queries
    "DatabaseId",
    "NativeQuery",
    "Query",
    "QueryBody",
    "QueryType",
]
