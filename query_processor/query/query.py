"""Abstract and native query representations."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..errors import ConfigurationError
from .references import FieldReference, OrderBy

DatabaseId = Union[int, str]


class QueryType(Enum):
    """Query kinds accepted by the pipeline."""

    QUERY = "query"
    NATIVE = "native"


@dataclass(frozen=True)
class QueryBody:
    """Driver-independent query: source table, selected fields, ordering."""

    source_table: int
    fields: Tuple[FieldReference, ...] = ()
    order_by: Tuple[OrderBy, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self):
        # Lists from callers are frozen so the body stays hashable
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "order_by", tuple(self.order_by))

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "source-table": self.source_table,
            "fields": [ref.to_clause() for ref in self.fields],
        }
        if self.order_by:
            data["order-by"] = [entry.to_clause() for entry in self.order_by]
        if self.limit is not None:
            data["limit"] = self.limit
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "QueryBody":
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Query body must be a mapping, got {type(data).__name__}")
        if "source-table" not in data:
            raise ConfigurationError("Query body is missing 'source-table'")
        fields = tuple(FieldReference.from_clause(c) for c in data.get("fields") or [])
        order_by = tuple(OrderBy.from_clause(c) for c in data.get("order-by") or [])
        return QueryBody(
            source_table=data["source-table"],
            fields=fields,
            order_by=order_by,
            limit=data.get("limit"),
        )


@dataclass(frozen=True)
class NativeQuery:
    """Driver-specific executable query.

    ``field_refs`` is filled by compilation with one reference per selected
    column, so drivers can annotate result columns with field metadata.
    """

    query: str
    params: Tuple[Any, ...] = ()
    field_refs: Tuple[FieldReference, ...] = field(default=(), compare=False)

    def __post_init__(self):
        object.__setattr__(self, "params", tuple(self.params))
        object.__setattr__(self, "field_refs", tuple(self.field_refs))

    def to_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "params": list(self.params)}

    @staticmethod
    def from_dict(data: Union[str, Mapping[str, Any]]) -> "NativeQuery":
        if isinstance(data, str):
            return NativeQuery(query=data)
        if not isinstance(data, Mapping) or not isinstance(data.get("query"), str):
            raise ConfigurationError("Native query must be a mapping with a 'query' string")
        return NativeQuery(query=data["query"], params=tuple(data.get("params") or ()))


@dataclass(frozen=True)
class Query:
    """Tagged query: an abstract body or a native payload.

    A ``query``-typed query may additionally carry its compiled ``native``
    form; its ``type`` never changes.
    """

    type: QueryType
    database: DatabaseId
    body: Optional[QueryBody] = None
    native: Optional[NativeQuery] = None

    def __post_init__(self):
        if not isinstance(self.type, QueryType):
            raise ConfigurationError(f"Unrecognized query type: {self.type!r}")
        if self.type is QueryType.QUERY and self.body is None:
            raise ConfigurationError("Query of type 'query' requires a body")
        if self.type is QueryType.NATIVE and self.native is None:
            raise ConfigurationError("Query of type 'native' requires a native payload")

    @staticmethod
    def mbql(database: DatabaseId, body: QueryBody) -> "Query":
        return Query(type=QueryType.QUERY, database=database, body=body)

    @staticmethod
    def native_query(database: DatabaseId, native: NativeQuery) -> "Query":
        return Query(type=QueryType.NATIVE, database=database, native=native)

    @property
    def is_native(self) -> bool:
        return self.type is QueryType.NATIVE

    def with_native(self, native: NativeQuery) -> "Query":
        """Attach a compiled native form, keeping the query type."""
        return replace(self, native=native)

    def with_body(self, body: QueryBody) -> "Query":
        return replace(self, body=body)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type.value, "database": self.database}
        if self.body is not None:
            data["query"] = self.body.to_dict()
        if self.native is not None:
            data["native"] = self.native.to_dict()
        return data

    @staticmethod
    def from_dict(data: Any) -> "Query":
        """Build a query from its mapping form, rejecting malformed shapes."""
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Query must be a mapping, got {type(data).__name__}")
        try:
            query_type = QueryType(data.get("type"))
        except ValueError as e:
            raise ConfigurationError(f"Unrecognized query type: {data.get('type')!r}") from e
        if "database" not in data:
            raise ConfigurationError("Query is missing 'database'")
        body = None
        native = None
        if data.get("query") is not None:
            body = QueryBody.from_dict(data["query"])
        if data.get("native") is not None:
            native = NativeQuery.from_dict(data["native"])
        return Query(type=query_type, database=data["database"], body=body, native=native)
