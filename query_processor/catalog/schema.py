"""Metadata classes: tables, fields, dimensions and result columns."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..query.references import FieldReference


class BaseType(Enum):
    """Semantic base types of field values."""

    INTEGER = "type/Integer"
    BIG_INTEGER = "type/BigInteger"
    FLOAT = "type/Float"
    DECIMAL = "type/Decimal"
    TEXT = "type/Text"
    BOOLEAN = "type/Boolean"
    DATE = "type/Date"
    DATETIME = "type/DateTime"
    TIME = "type/Time"
    UNKNOWN = "type/*"


class DimensionType(Enum):
    """How a dimension supplies human readable values."""

    INTERNAL = "internal"  # inline value -> label table
    EXTERNAL = "external"  # labels come from another field


def humanize(name: str) -> str:
    """Turn a column name such as ``CATEGORY_ID`` into ``Category ID``."""
    words: List[str] = []
    for part in name.replace("-", "_").split("_"):
        if not part:
            continue
        if part.lower() == "id":
            words.append("ID")
        else:
            words.append(part[0].upper() + part[1:].lower())
    if not words:
        return name
    return " ".join(words)


@dataclass
class Table:
    """Table metadata."""

    id: int
    name: str
    schema_name: Optional[str] = None
    database: Any = None
    display_name: Optional[str] = None

    def __post_init__(self):
        if self.display_name is None:
            self.display_name = humanize(self.name)

    def fully_qualified_name(self) -> str:
        """Get qualified table name used in native queries."""
        if self.schema_name:
            return f"{self.schema_name}.{self.name}"
        return self.name

    def __repr__(self) -> str:
        return f"Table({self.id}, {self.fully_qualified_name()})"


@dataclass
class Field:
    """Field (column) metadata stored in the catalog."""

    id: int
    table_id: int
    name: str
    base_type: BaseType = BaseType.UNKNOWN
    display_name: Optional[str] = None
    special_type: Optional[str] = None
    fk_target_field_id: Optional[int] = None  # Field this FK points at
    description: Optional[str] = None
    visibility_type: str = "normal"

    def __post_init__(self):
        if self.display_name is None:
            self.display_name = humanize(self.name)

    def __repr__(self) -> str:
        return f"Field({self.id}, {self.name}, {self.base_type.value})"


@dataclass(frozen=True)
class Dimension:
    """How a field's raw values are relabeled for display."""

    field_id: int
    type: DimensionType
    name: str
    human_readable_field_id: Optional[int] = None

    def __post_init__(self):
        if self.type is DimensionType.EXTERNAL and self.human_readable_field_id is None:
            raise ConfigurationError(
                f"External dimension '{self.name}' on field {self.field_id} "
                "requires a human readable field"
            )

    @property
    def is_internal(self) -> bool:
        return self.type is DimensionType.INTERNAL

    @property
    def is_external(self) -> bool:
        return self.type is DimensionType.EXTERNAL


@dataclass(frozen=True)
class FieldValues:
    """Value table of a field: index-aligned raw values and labels."""

    field_id: int
    values: Tuple[Any, ...]
    human_readable_values: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "values", tuple(self.values))
        object.__setattr__(self, "human_readable_values", tuple(self.human_readable_values))
        if self.human_readable_values and len(self.values) != len(self.human_readable_values):
            raise ConfigurationError(
                f"Field {self.field_id} has {len(self.values)} values but "
                f"{len(self.human_readable_values)} human readable values"
            )

    def label_index(self) -> Dict[Any, Any]:
        """Map each raw value to its label."""
        return dict(zip(self.values, self.human_readable_values))


@dataclass
class Column:
    """Metadata of one result column.

    ``dimension`` and ``values`` are only set on hydrated copies and never
    serialized.
    """

    name: str
    display_name: Optional[str] = None
    base_type: Optional[str] = None
    id: Optional[int] = None
    table_id: Optional[int] = None
    special_type: Optional[str] = None
    fk_field_id: Optional[int] = None
    visibility_type: Optional[str] = "normal"
    remapped_from: Optional[str] = None
    remapped_to: Optional[str] = None
    description: Optional[str] = None
    target: Optional[Any] = None
    field_ref: Optional[FieldReference] = field(default=None, compare=False, repr=False)
    dimension: Optional[Dimension] = field(default=None, compare=False, repr=False)
    values: Optional[FieldValues] = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.display_name is None:
            self.display_name = self.name

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "table_id": self.table_id,
            "base_type": self.base_type,
            "special_type": self.special_type,
            "fk_field_id": self.fk_field_id,
            "visibility_type": self.visibility_type,
            "remapped_from": self.remapped_from,
            "remapped_to": self.remapped_to,
            "description": self.description,
            "target": self.target,
        }
        if self.field_ref is not None:
            data["field_ref"] = self.field_ref.to_clause()
        return data


@dataclass
class ResultMetadata:
    """Column metadata of a result plus annotations added by middleware."""

    cols: List[Column] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    def with_cols(self, cols: Sequence[Column]) -> "ResultMetadata":
        return replace(self, cols=list(cols))

    def with_extra(self, **annotations: Any) -> "ResultMetadata":
        """Return a copy with ``annotations`` merged into ``extra``."""
        merged = dict(self.extra)
        merged.update(annotations)
        return replace(self, extra=merged)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"cols": [col.to_dict() for col in self.cols]}
        data.update(self.extra)
        return data
