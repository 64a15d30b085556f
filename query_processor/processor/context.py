"""Execution context threaded through the middleware chain."""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, List, Optional

from ..catalog.schema import ResultMetadata
from ..drivers.base import Driver
from ..query import NativeQuery, Query
from ..streaming.interface import StreamingResultsWriter

Row = List[Any]
RowFn = Callable[[Row], Row]
RowTransform = Callable[[ResultMetadata], RowFn]


def _identity(value):
    return value


def identity_row_transform(metadata: ResultMetadata) -> RowFn:
    """Row transform that leaves every row untouched."""
    return _identity


@dataclass(frozen=True)
class ExecutionContext:
    """Continuations and collaborators of one query execution.

    Built fresh for every execution and never shared. Middleware never
    replaces a continuation; the ``wrap_*`` methods return a new context
    whose slot runs the given function first and then the wrapped one.
    """

    preprocessed: Callable[[Query], Query] = _identity
    native: Callable[[NativeQuery], NativeQuery] = _identity
    metadata: Callable[[ResultMetadata], ResultMetadata] = _identity
    driver: Optional[Driver] = None
    writer: Optional[StreamingResultsWriter] = None
    query_id: Optional[str] = field(default=None, compare=False)

    CONTINUATIONS = ("preprocessed", "native", "metadata")

    def wrap_preprocessed(self, fn: Callable[[Query], Query]) -> "ExecutionContext":
        wrapped = self.preprocessed
        return replace(self, preprocessed=lambda query: wrapped(fn(query)))

    def wrap_native(self, fn: Callable[[NativeQuery], NativeQuery]) -> "ExecutionContext":
        wrapped = self.native
        return replace(self, native=lambda native: wrapped(fn(native)))

    def wrap_metadata(
        self, fn: Callable[[ResultMetadata], ResultMetadata]
    ) -> "ExecutionContext":
        wrapped = self.metadata
        return replace(self, metadata=lambda metadata: wrapped(fn(metadata)))

    def with_driver(self, driver: Driver) -> "ExecutionContext":
        return replace(self, driver=driver)

    def with_writer(self, writer: StreamingResultsWriter) -> "ExecutionContext":
        return replace(self, writer=writer)
