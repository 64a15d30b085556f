"""Shared SQL compilation for drivers backed by a SQL database."""

from __future__ import annotations

import logging
from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

import pyarrow as pa
from sqlglot import exp

from ..catalog import BaseType, Catalog, Column, Field, ResultMetadata, Table
from ..errors import CompilationError, MetadataStoreError
from ..query import FieldById, FieldReference, FieldViaForeignKey, NativeQuery, QueryBody
from ..query.references import SortDirection
from .base import Driver, DriverFeature
from .cursor import RowCursor, base_type_for_arrow

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10000


@dataclass
class _JoinTarget:
    """A table joined in to resolve a foreign key reference."""

    alias: str
    table: Table
    source_field: Field
    target_field: Field


class SqlDriver(Driver):
    """Driver compiling query bodies to SQL with sqlglot."""

    dialect = "postgres"

    def __init__(self, name: str, config: Dict[str, Any], catalog: Optional[Catalog] = None):
        super().__init__(name, config)
        if catalog is None:
            catalog = Catalog()
        self.catalog = catalog
        self.batch_size = config.get("batch_size", DEFAULT_BATCH_SIZE)

    def compile(self, body: QueryBody) -> NativeQuery:
        """Compile a query body into a single SELECT statement.

        FK-traversal references become LEFT JOINs against the destination
        table, joined on the source field = the FK target field.
        """
        try:
            source = self.catalog.require_table(body.source_table)
        except MetadataStoreError as e:
            raise CompilationError(str(e), body) from e
        if not body.fields:
            raise CompilationError("Query selects no fields", body)

        source_alias = source.name
        joins: Dict[int, _JoinTarget] = {}
        projections: List[exp.Expression] = []
        used_names: Dict[str, int] = {}
        for ref in body.fields:
            column = self._column_for(ref, body, source, source_alias, joins)
            output_name = self._unique_name(self._output_name(ref), used_names)
            projections.append(exp.alias_(column, output_name, quoted=True))

        select = exp.select(*projections).from_(self._table_expression(source, source_alias))
        for target in joins.values():
            condition = exp.EQ(
                this=self._column_expression(source_alias, target.source_field.name),
                expression=self._column_expression(target.alias, target.target_field.name),
            )
            select = select.join(
                self._table_expression(target.table, target.alias),
                on=condition,
                join_type="left",
            )
        if body.order_by:
            ordered: List[exp.Expression] = []
            for entry in body.order_by:
                column = self._column_for(entry.field, body, source, source_alias, joins)
                desc = entry.direction is SortDirection.DESC
                ordered.append(exp.Ordered(this=column, desc=desc))
            select = select.order_by(*ordered)
        if body.limit is not None:
            select = select.limit(body.limit)

        sql = select.sql(dialect=self.dialect)
        logger.debug(f"Compiled query for {self.name}: {sql[:200]}")
        return NativeQuery(query=sql, field_refs=body.fields)

    def _column_for(
        self,
        ref: FieldReference,
        body: QueryBody,
        source: Table,
        source_alias: str,
        joins: Dict[int, _JoinTarget],
    ) -> exp.Column:
        """Resolve a field reference to a qualified column expression."""
        if isinstance(ref, FieldById):
            field = self._require_field(ref.id, body)
            if field.table_id != source.id:
                raise CompilationError(
                    f"Field {field.id} does not belong to source table {source.id}; "
                    "use a foreign key reference",
                    body,
                )
            return self._column_expression(source_alias, field.name)
        if isinstance(ref, FieldViaForeignKey):
            if not self.supports(DriverFeature.FOREIGN_KEYS):
                raise CompilationError(f"{self.name} does not support foreign keys", body)
            target = self._join_for(ref, body, source, joins)
            dest = self._require_field(ref.dest.field_id, body)
            if dest.table_id != target.table.id:
                raise CompilationError(
                    f"Field {dest.id} is not in table {target.table.name} "
                    f"referenced by field {target.source_field.id}",
                    body,
                )
            return self._column_expression(target.alias, dest.name)
        raise CompilationError(f"Unsupported field reference: {ref!r}", body)

    def _join_for(
        self,
        ref: FieldViaForeignKey,
        body: QueryBody,
        source: Table,
        joins: Dict[int, _JoinTarget],
    ) -> _JoinTarget:
        if not isinstance(ref.source, FieldById) or not isinstance(ref.dest, FieldById):
            raise CompilationError(f"Nested foreign key references are not supported: {ref!r}", body)
        source_field = self._require_field(ref.source.id, body)
        existing = joins.get(source_field.id)
        if existing is not None:
            return existing
        if source_field.table_id != source.id:
            raise CompilationError(
                f"Foreign key field {source_field.id} is not in source table {source.id}", body
            )
        if source_field.fk_target_field_id is None:
            raise CompilationError(f"Field {source_field.id} is not a foreign key", body)
        target_field = self._require_field(source_field.fk_target_field_id, body)
        try:
            table = self.catalog.require_table(target_field.table_id)
        except MetadataStoreError as e:
            raise CompilationError(str(e), body) from e
        target = _JoinTarget(
            alias=f"{table.name}__via__{source_field.name}",
            table=table,
            source_field=source_field,
            target_field=target_field,
        )
        joins[source_field.id] = target
        return target

    def _require_field(self, field_id: int, body: QueryBody) -> Field:
        try:
            return self.catalog.require_field(field_id)
        except MetadataStoreError as e:
            raise CompilationError(str(e), body) from e

    def _output_name(self, ref: FieldReference) -> str:
        field = self.catalog.get_field(ref.field_id)
        name = field.name if field else str(ref.field_id)
        if isinstance(ref, FieldViaForeignKey):
            source = self.catalog.get_field(ref.source.field_id)
            source_name = source.name if source else str(ref.source.field_id)
            return f"{name}__via__{source_name}"
        return name

    def _unique_name(self, name: str, used_names: Dict[str, int]) -> str:
        count = used_names.get(name, 0) + 1
        used_names[name] = count
        if count == 1:
            return name
        return f"{name}_{count}"

    def _table_expression(self, table: Table, alias: str) -> exp.Table:
        db = None
        if table.schema_name:
            db = exp.to_identifier(table.schema_name, quoted=True)
        return exp.Table(
            this=exp.to_identifier(table.name, quoted=True),
            db=db,
            alias=exp.TableAlias(this=exp.to_identifier(alias, quoted=True)),
        )

    def _column_expression(self, qualifier: str, column: str) -> exp.Column:
        return exp.Column(
            this=exp.to_identifier(column, quoted=True),
            table=exp.to_identifier(qualifier, quoted=True),
        )

    def execute(self, native: NativeQuery) -> Tuple[ResultMetadata, RowCursor]:
        """Run the query and return annotated metadata plus a lazy cursor."""
        self.ensure_connected()
        logger.debug(f"Executing query on {self.name}: {native.query[:100]}...")
        schema, batches, release = self._execute_batches(native)
        metadata = self.result_metadata(native, schema)
        return metadata, RowCursor.from_batches(batches, on_close=release)

    @abstractmethod
    def _execute_batches(
        self, native: NativeQuery
    ) -> Tuple[pa.Schema, Iterator[pa.RecordBatch], Callable[[], None]]:
        """Start the query; return its schema, lazy batches and a release hook."""
        pass

    def result_metadata(self, native: NativeQuery, schema: pa.Schema) -> ResultMetadata:
        """Build column metadata, annotating compiled columns from the catalog."""
        annotate = len(native.field_refs) == len(schema)
        cols: List[Column] = []
        for index, arrow_field in enumerate(schema):
            base_type = base_type_for_arrow(arrow_field.type).value
            column = Column(name=arrow_field.name, base_type=base_type)
            if annotate:
                column = self._annotate_column(column, native.field_refs[index])
            cols.append(column)
        return ResultMetadata(cols=cols)

    def _annotate_column(self, column: Column, ref: FieldReference) -> Column:
        field = self.catalog.get_field(ref.field_id)
        if field is None:
            column.field_ref = ref
            return column
        fk_field_id = None
        if isinstance(ref, FieldViaForeignKey):
            fk_field_id = ref.source.field_id
        base_type = column.base_type
        if field.base_type is not BaseType.UNKNOWN:
            base_type = field.base_type.value
        return Column(
            name=field.name,
            display_name=field.display_name,
            base_type=base_type,
            id=field.id,
            table_id=field.table_id,
            special_type=field.special_type,
            fk_field_id=fk_field_id,
            visibility_type=field.visibility_type,
            description=field.description,
            field_ref=ref,
        )
