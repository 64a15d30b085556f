"""Tests for the native compilation and timezone annotation stages."""

import pytest

from query_processor.catalog import ResultMetadata
from query_processor.errors import CompilationError, ConfigurationError
from query_processor.processor import (
    ExecutionContext,
    NativeCompilation,
    TimezoneAnnotation,
    identity_row_transform,
)
from query_processor.query import FieldById, NativeQuery, Query, QueryBody, QueryType
from query_processor.timezone import ConfiguredTimezoneResolver
from tests.helpers import FakeDriver


class CapturingStep:
    """Terminal step recording what it was called with."""

    def __init__(self):
        self.calls = []

    def __call__(self, query, row_transform, context):
        self.calls.append((query, row_transform, context))
        return "done"


def _body():
    return QueryBody(source_table=1, fields=[FieldById(10)])


def test_native_compilation_attaches_native_form():
    driver = FakeDriver(ResultMetadata(), [])
    seen = []
    context = (
        ExecutionContext(driver=driver)
        .wrap_preprocessed(lambda query: seen.append(("preprocessed", query)) or query)
        .wrap_native(lambda native: seen.append(("native", native)) or native)
    )
    step = CapturingStep()
    query = Query.mbql(1, _body())

    result = NativeCompilation().process(query, identity_row_transform, context, step)

    assert result == "done"
    compiled, _, _ = step.calls[0]
    assert compiled.type is QueryType.QUERY
    assert compiled.body == query.body
    assert compiled.native.query == "SELECT fake"
    assert driver.compiled == [query.body]
    assert seen == [("preprocessed", query), ("native", compiled.native)]


def test_native_queries_are_not_compiled():
    driver = FakeDriver(ResultMetadata(), [])
    step = CapturingStep()
    query = Query.native_query(1, NativeQuery("SELECT 1"))

    NativeCompilation().process(query, identity_row_transform, ExecutionContext(driver=driver), step)

    assert step.calls[0][0] is query
    assert driver.compiled == []


def test_compilation_errors_propagate_unchanged():
    error = CompilationError("unknown field 10")
    driver = FakeDriver(ResultMetadata(), [], compile_error=error)
    step = CapturingStep()

    with pytest.raises(CompilationError) as excinfo:
        NativeCompilation().process(
            Query.mbql(1, _body()), identity_row_transform, ExecutionContext(driver=driver), step
        )

    assert excinfo.value is error
    assert step.calls == []


def test_preprocessed_continuation_can_rewrite_query():
    driver = FakeDriver(ResultMetadata(), [])
    limited = QueryBody(source_table=1, fields=[FieldById(10)], limit=1)
    context = ExecutionContext(driver=driver).wrap_preprocessed(lambda query: query.with_body(limited))
    step = CapturingStep()

    NativeCompilation().process(Query.mbql(1, _body()), identity_row_transform, context, step)

    assert driver.compiled == [limited]


def test_timezone_annotation():
    stage = TimezoneAnnotation(ConfiguredTimezoneResolver("Europe/Berlin"))
    step = CapturingStep()
    row_transform = identity_row_transform

    stage.process(Query.mbql(1, _body()), row_transform, ExecutionContext(), step)

    _, passed_transform, context = step.calls[0]
    assert passed_transform is row_transform
    metadata = context.metadata(ResultMetadata(extra={"existing": True}))
    assert metadata.extra == {"existing": True, "results_timezone": "Europe/Berlin"}


def test_timezone_annotation_with_requested_timezone():
    stage = TimezoneAnnotation(ConfiguredTimezoneResolver("UTC", "America/New_York"))

    metadata = stage.annotate(ResultMetadata())

    assert metadata.to_dict() == {
        "cols": [],
        "results_timezone": "UTC",
        "requested_timezone": "America/New_York",
    }


def test_unknown_timezone():
    with pytest.raises(ConfigurationError):
        ConfiguredTimezoneResolver("Mars/Olympus_Mons")


def test_continuations_compose_in_wrapping_order():
    """The most recently wrapped function runs first."""
    calls = []
    context = (
        ExecutionContext()
        .wrap_metadata(lambda md: calls.append("outer") or md.with_extra(outer=len(calls)))
        .wrap_metadata(lambda md: calls.append("inner") or md.with_extra(inner=len(calls)))
    )

    metadata = context.metadata(ResultMetadata())

    assert calls == ["inner", "outer"]
    assert metadata.extra == {"inner": 1, "outer": 2}
