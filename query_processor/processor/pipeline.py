"""QueryPipeline composes middleware stages around the native executor."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from ..catalog.schema import ResultMetadata
from ..drivers.registry import DriverRegistry
from ..errors import ConfigurationError
from ..query import Query
from ..streaming.interface import StreamingResultsWriter
from ..utils.logging import get_contextual_logger
from .context import ExecutionContext, RowFn, RowTransform, identity_row_transform

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


@dataclass
class ExecutionResult:
    """Outcome of one execution; rows live in the writer's output."""

    status: str
    row_count: int
    metadata: ResultMetadata
    query: Query


ExecutionStep = Callable[[Query, RowTransform, ExecutionContext], ExecutionResult]


class Stage(Protocol):
    """One middleware stage of the pipeline.

    A stage may rewrite the query, wrap the row transform or context
    continuations, and must call ``next_step`` with its rewrites applied.
    """

    def process(
        self,
        query: Query,
        row_transform: RowTransform,
        context: ExecutionContext,
        next_step: ExecutionStep,
    ) -> ExecutionResult:
        ...


class _StageChain:
    """Callable step running ``stages[index:]`` and then the terminal step."""

    def __init__(self, stages: Sequence[Stage], index: int, terminal: ExecutionStep):
        self.stages = stages
        self.index = index
        self.terminal = terminal

    def __call__(
        self, query: Query, row_transform: RowTransform, context: ExecutionContext
    ) -> ExecutionResult:
        if self.index >= len(self.stages):
            return self.terminal(query, row_transform, context)
        stage = self.stages[self.index]
        next_step = _StageChain(self.stages, self.index + 1, self.terminal)
        return stage.process(query, row_transform, context, next_step)


class QueryPipeline:
    """Ordered list of stages applied to every query, outermost first."""

    def __init__(
        self,
        stages: Optional[List[Stage]] = None,
        drivers: Optional[DriverRegistry] = None,
    ):
        """Initialize with stages built once at startup."""
        if stages is None:
            stages = []
        self.stages = list(stages)
        self.drivers = drivers

    def describe(self) -> List[str]:
        """Stage names in execution order."""
        return [type(stage).__name__ for stage in self.stages]

    def step(self) -> ExecutionStep:
        """The composed step: every stage, then native execution."""
        return _StageChain(self.stages, 0, execute_native)

    def run(
        self,
        query: Union[Query, Mapping[str, Any]],
        writer: StreamingResultsWriter,
        row_transform: Optional[RowTransform] = None,
        context: Optional[ExecutionContext] = None,
    ) -> ExecutionResult:
        """Resolve the query's driver and execute it into ``writer``."""
        if context is None:
            context = ExecutionContext()
        try:
            query = coerce_query(query)
            if self.drivers is None:
                raise ConfigurationError("Pipeline has no driver registry")
            driver = self.drivers.get(query.database)
        except ConfigurationError:
            if writer is not None:
                writer.close()
            raise
        context = context.with_driver(driver).with_writer(writer)
        return self.execute(query, row_transform, context)

    def execute(
        self,
        query: Union[Query, Mapping[str, Any]],
        row_transform: Optional[RowTransform],
        context: ExecutionContext,
    ) -> ExecutionResult:
        """Validate, then run the chain with a context carrying driver and writer.

        The writer's sink is released on every exit path.
        """
        writer = context.writer
        try:
            query = coerce_query(query)
            if row_transform is None:
                row_transform = identity_row_transform
            _validate(row_transform, context)
            query_id = context.query_id or uuid.uuid4().hex
            context = replace(context, query_id=query_id)
            execution_logger = get_contextual_logger(
                __name__, {"query_id": query_id, "database": query.database}
            )
            execution_logger.info(f"Executing {query.type.value} query")
            try:
                result = self.step()(query, row_transform, context)
            except Exception as e:
                execution_logger.warning(f"Query execution failed: {type(e).__name__}: {e}")
                raise
            execution_logger.info(f"Query {result.status} with {result.row_count} rows")
            return result
        finally:
            if writer is not None and not writer.closed:
                writer.close()


def run_pipeline(
    query: Union[Query, Mapping[str, Any]],
    row_transform: Optional[RowTransform],
    context: ExecutionContext,
    stages: Optional[List[Stage]] = None,
) -> ExecutionResult:
    """Run ``stages`` over a context that already carries driver and writer."""
    return QueryPipeline(stages).execute(query, row_transform, context)


def coerce_query(query: Union[Query, Mapping[str, Any]]) -> Query:
    """Accept a Query or its mapping form; anything else is a configuration error."""
    if isinstance(query, Query):
        return query
    return Query.from_dict(query)


def _validate(row_transform: Any, context: Any) -> None:
    if not isinstance(context, ExecutionContext):
        raise ConfigurationError(f"Expected an ExecutionContext, got {type(context).__name__}")
    if not callable(row_transform):
        raise ConfigurationError("Row transform must be callable")
    for name in ExecutionContext.CONTINUATIONS:
        if not callable(getattr(context, name)):
            raise ConfigurationError(f"Missing required continuation: {name}")
    if context.driver is None:
        raise ConfigurationError("Execution context has no driver")
    if context.writer is None:
        raise ConfigurationError("Execution context has no results writer")


def execute_native(
    query: Query, row_transform: RowTransform, context: ExecutionContext
) -> ExecutionResult:
    """Terminal step: run the native form and stream rows into the writer."""
    native = query.native
    if native is None:
        raise ConfigurationError(
            "Query has no native form; the native compilation stage must run first"
        )
    raw_metadata, cursor = context.driver.execute(native)
    with cursor:
        row_fn = row_transform(raw_metadata)
        metadata = context.metadata(raw_metadata)
        row_count = _stream_rows(cursor, row_fn, metadata, context.writer)
    return ExecutionResult(
        status=STATUS_COMPLETED,
        row_count=row_count,
        metadata=metadata,
        query=query,
    )


def _stream_rows(
    rows,
    row_fn: RowFn,
    metadata: ResultMetadata,
    writer: StreamingResultsWriter,
) -> int:
    """Drive begin / write_row / finish; finish runs even when rows fail.

    On failure the trailer is best effort: the error that stopped the rows
    is the one raised.
    """
    row_count = 0
    try:
        writer.begin(metadata)
        for row in rows:
            writer.write_row(row_fn(row), row_count)
            row_count += 1
    except BaseException:
        if writer.started and not writer.finished:
            try:
                writer.finish(final_metadata(metadata, STATUS_FAILED, row_count))
            except Exception as e:
                logger.debug(f"Could not write trailer after failure: {type(e).__name__}: {e}")
        raise
    writer.finish(final_metadata(metadata, STATUS_COMPLETED, row_count))
    return row_count


def final_metadata(metadata: ResultMetadata, status: str, row_count: int) -> Dict[str, Any]:
    """Document handed to ``finish``: result data plus top-level status keys."""
    return {
        "data": metadata.to_dict(),
        "row_count": row_count,
        "status": status,
    }
