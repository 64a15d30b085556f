"""Dimension remapping: fetch human readable values and relabel results.

Pre-processing rewrites the query so that every selected field with an
external dimension also fetches its human readable field through the foreign
key. Post-processing relabels those pre-fetched columns and appends label
columns for fields with an internal (value table) dimension.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..catalog.catalog import MetadataStore
from ..catalog.schema import BaseType, Column, Dimension, ResultMetadata
from ..errors import MetadataStoreError
from ..query import FieldById, FieldReference, FieldViaForeignKey, Query
from .context import ExecutionContext, RowFn, RowTransform

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemapTuple:
    """Links a selected field, its foreign key lookup reference and the dimension."""

    original_ref: FieldById
    remap_ref: FieldViaForeignKey
    dimension: Dimension


def create_remap_col_tuples(
    fields: Sequence[FieldReference], store: MetadataStore
) -> List[RemapTuple]:
    """Build one tuple per selected field whose dimension is external.

    Dimensions are looked up in one batch for exactly the selected field ids.
    """
    selected: List[FieldById] = []
    for ref in fields:
        if isinstance(ref, FieldById) and ref not in selected:
            selected.append(ref)
    if not selected:
        return []

    dimensions = store.dimensions_for([ref.id for ref in selected])
    tuples: List[RemapTuple] = []
    for ref in selected:
        dimension = dimensions.get(ref.id)
        if dimension is None or not dimension.is_external:
            continue
        remap_ref = FieldViaForeignKey(ref, FieldById(dimension.human_readable_field_id))
        tuples.append(RemapTuple(ref, remap_ref, dimension))
    return tuples


def add_foreign_key_remaps(
    query: Query, store: MetadataStore
) -> Tuple[List[RemapTuple], Query]:
    """Rewrite ``query`` to also fetch the human readable value of remapped fields.

    Args:
        query: Query to rewrite; native queries are returned untouched
        store: Metadata store providing dimensions

    Returns:
        Tuple of (remap tuples, rewritten query). When nothing is remapped the
        tuples are empty and the query is the very object passed in.
    """
    if query.is_native or query.body is None:
        return [], query

    body = query.body
    tuples = create_remap_col_tuples(body.fields, store)
    if not tuples:
        return [], query

    fields = list(body.fields)
    remap_refs: Dict[FieldReference, FieldViaForeignKey] = {}
    for remap in tuples:
        remap_refs[remap.original_ref] = remap.remap_ref
        if remap.remap_ref not in fields:
            fields.append(remap.remap_ref)

    # Order by the label, not the raw code
    order_by = []
    for clause in body.order_by:
        remap_ref = remap_refs.get(clause.field)
        if remap_ref is None:
            order_by.append(clause)
        else:
            order_by.append(clause.with_field(remap_ref))

    logger.debug(f"Added {len(tuples)} foreign key remap(s) to query on table {body.source_table}")
    return tuples, query.with_body(replace(body, fields=tuple(fields), order_by=tuple(order_by)))


def _find_column(
    cols: Sequence[Column], ref: FieldReference, field_id: Optional[int]
) -> Optional[int]:
    """Index of the column produced by ``ref``, falling back to the field id."""
    for index, col in enumerate(cols):
        if col.field_ref is not None and col.field_ref == ref:
            return index
    if field_id is None:
        return None
    for index, col in enumerate(cols):
        if col.field_ref is None and col.id == field_id:
            return index
    return None


def _label_column(source: Column, dimension: Dimension) -> Column:
    """Synthetic column holding the labels of ``source``."""
    return Column(
        name=dimension.name,
        display_name=dimension.name,
        base_type=BaseType.TEXT.value,
        remapped_from=source.name,
    )


class ResultRemapper:
    """Precomputed remapping of one result: new metadata plus a row function."""

    def __init__(
        self,
        metadata: ResultMetadata,
        label_sources: Optional[List[Tuple[int, Dict[Any, Any]]]] = None,
        is_noop: bool = False,
    ):
        self.metadata = metadata
        # (source column index, raw value -> label), ascending by index
        self.label_sources = label_sources or []
        self.is_noop = is_noop

    @classmethod
    def noop(cls, metadata: ResultMetadata) -> "ResultRemapper":
        return cls(metadata, is_noop=True)

    @classmethod
    def build(
        cls,
        tuples: Sequence[RemapTuple],
        metadata: ResultMetadata,
        store: MetadataStore,
    ) -> "ResultRemapper":
        """Plan the remapping of a result described by ``metadata``.

        The columns are hydrated with a single metadata store call. A
        hydration failure propagates; the result is never passed through
        unremapped.
        """
        cols = list(metadata.cols)
        hydrated = list(store.hydrate_columns(cols))
        if len(hydrated) != len(cols):
            raise MetadataStoreError(
                f"Hydration returned {len(hydrated)} columns for {len(cols)} result columns"
            )

        new_cols = list(cols)
        externally_remapped = set()
        for remap in tuples:
            original_index = _find_column(cols, remap.original_ref, remap.dimension.field_id)
            remap_index = _find_column(
                cols, remap.remap_ref, remap.dimension.human_readable_field_id
            )
            if original_index is None or remap_index is None:
                logger.debug(
                    f"Skipping remap of field {remap.original_ref.id}: column not in result"
                )
                continue
            original = cols[original_index]
            new_cols[original_index] = replace(
                new_cols[original_index], remapped_to=remap.dimension.name
            )
            new_cols[remap_index] = replace(
                new_cols[remap_index],
                remapped_from=original.name,
                display_name=remap.dimension.name,
            )
            externally_remapped.add(original_index)

        label_sources: List[Tuple[int, Dict[Any, Any]]] = []
        label_cols: List[Column] = []
        for index, col in enumerate(hydrated):
            dimension = col.dimension
            if dimension is None or not dimension.is_internal:
                continue
            # External remapping wins on the same column
            if index in externally_remapped:
                continue
            labels = col.values.label_index() if col.values is not None else {}
            new_cols[index] = replace(new_cols[index], remapped_to=dimension.name)
            label_cols.append(_label_column(cols[index], dimension))
            label_sources.append((index, labels))

        if not externally_remapped and not label_sources:
            return cls.noop(metadata)

        # Label columns follow all result columns, in source column order
        return cls(metadata.with_cols(new_cols + label_cols), label_sources)

    def remap_row(self, row: Sequence[Any]) -> Sequence[Any]:
        """Append one label per internally remapped column."""
        if not self.label_sources:
            return row
        remapped = list(row)
        for index, labels in self.label_sources:
            remapped.append(labels.get(row[index]))
        return remapped


def remap_results(
    tuples: Sequence[RemapTuple],
    metadata: ResultMetadata,
    rows: Iterable[Sequence[Any]],
    store: MetadataStore,
) -> Tuple[ResultMetadata, Iterable[Sequence[Any]]]:
    """Rewrite result metadata and rows to present human readable values.

    Returns ``(metadata, rows)`` themselves when nothing applies. A list of
    rows gives a list back; any other iterable is remapped lazily.
    """
    remapper = ResultRemapper.build(tuples, metadata, store)
    if remapper.is_noop:
        return metadata, rows
    if isinstance(rows, list):
        return remapper.metadata, [remapper.remap_row(row) for row in rows]
    return remapper.metadata, (remapper.remap_row(row) for row in rows)


class _RemapperCache:
    """Builds the remapper once per raw metadata object of an execution."""

    def __init__(self, tuples: Sequence[RemapTuple], store: MetadataStore):
        self.tuples = tuples
        self.store = store
        self._metadata: Optional[ResultMetadata] = None
        self._remapper: Optional[ResultRemapper] = None

    def remapper_for(self, metadata: ResultMetadata) -> ResultRemapper:
        if self._remapper is None or self._metadata is not metadata:
            self._remapper = ResultRemapper.build(self.tuples, metadata, self.store)
            self._metadata = metadata
        return self._remapper


class DimensionRemapping:
    """Pipeline stage applying dimension remapping to queries and results."""

    def __init__(self, store: MetadataStore):
        self.store = store

    def process(self, query, row_transform: RowTransform, context: ExecutionContext, next_step):
        tuples, query = add_foreign_key_remaps(query, self.store)
        cache = _RemapperCache(tuples, self.store)

        def remapping_row_transform(metadata: ResultMetadata) -> RowFn:
            remapper = cache.remapper_for(metadata)
            if remapper.is_noop:
                return row_transform(metadata)
            row_fn = row_transform(remapper.metadata)
            return lambda row: row_fn(remapper.remap_row(row))

        def remap_metadata(metadata: ResultMetadata) -> ResultMetadata:
            return cache.remapper_for(metadata).metadata

        context = context.wrap_metadata(remap_metadata)
        return next_step(query, remapping_row_transform, context)
