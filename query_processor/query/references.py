"""Field reference clauses used in query bodies and dimension lookups."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Sequence

from ..errors import ConfigurationError

FIELD_ID_TAG = "field-id"
FK_TAG = "fk->"


class FieldReference(ABC):
    """Base class for all field references."""

    @property
    @abstractmethod
    def field_id(self) -> int:
        """Id of the field whose values this reference produces."""
        pass

    @abstractmethod
    def to_clause(self) -> List[Any]:
        """Convert reference to its serialized clause form."""
        pass

    @staticmethod
    def from_clause(clause: Sequence[Any]) -> "FieldReference":
        """Parse a serialized clause such as ``["field-id", 1]``."""
        if isinstance(clause, FieldReference):
            return clause
        if not isinstance(clause, (list, tuple)) or not clause:
            raise ConfigurationError(f"Invalid field clause: {clause!r}")
        tag = clause[0]
        if tag == FIELD_ID_TAG and len(clause) == 2:
            field_id = clause[1]
            if not isinstance(field_id, int) or isinstance(field_id, bool):
                raise ConfigurationError(f"Field id must be an integer: {clause!r}")
            return FieldById(field_id)
        if tag == FK_TAG and len(clause) == 3:
            source = FieldReference.from_clause(clause[1])
            dest = FieldReference.from_clause(clause[2])
            return FieldViaForeignKey(source, dest)
        raise ConfigurationError(f"Unknown field clause: {clause!r}")


@dataclass(frozen=True)
class FieldById(FieldReference):
    """Reference to a field of the query's source table."""

    id: int

    @property
    def field_id(self) -> int:
        return self.id

    def to_clause(self) -> List[Any]:
        return [FIELD_ID_TAG, self.id]

    def __repr__(self) -> str:
        return f"FieldById({self.id})"


@dataclass(frozen=True)
class FieldViaForeignKey(FieldReference):
    """Reference to ``dest`` reached by following the foreign key ``source``."""

    source: FieldReference
    dest: FieldReference

    @property
    def field_id(self) -> int:
        return self.dest.field_id

    def to_clause(self) -> List[Any]:
        return [FK_TAG, self.source.to_clause(), self.dest.to_clause()]

    def __repr__(self) -> str:
        return f"FieldViaForeignKey({self.source!r} -> {self.dest!r})"


class SortDirection(Enum):
    """Order-by directions."""

    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class OrderBy:
    """A single ORDER BY entry."""

    direction: SortDirection
    field: FieldReference

    def with_field(self, field: FieldReference) -> "OrderBy":
        """Return the same ordering applied to another field."""
        return OrderBy(direction=self.direction, field=field)

    def to_clause(self) -> List[Any]:
        return [self.direction.value, self.field.to_clause()]

    @staticmethod
    def from_clause(clause: Sequence[Any]) -> "OrderBy":
        """Parse ``["asc", <field clause>]``."""
        if isinstance(clause, OrderBy):
            return clause
        if not isinstance(clause, (list, tuple)) or len(clause) != 2:
            raise ConfigurationError(f"Invalid order-by clause: {clause!r}")
        try:
            direction = SortDirection(clause[0])
        except ValueError as e:
            raise ConfigurationError(f"Unknown sort direction: {clause[0]!r}") from e
        return OrderBy(direction=direction, field=FieldReference.from_clause(clause[1]))
