"""Tests for logging setup."""

import json
import logging

from query_processor.config import LoggingConfig
from query_processor.utils.logging import (
    StandardFormatter,
    StructuredFormatter,
    configure_from,
    get_contextual_logger,
)


def _record(message="Query completed", context=None):
    record = logging.LogRecord(
        name="query_processor.processor.pipeline",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=message,
        args=(),
        exc_info=None,
    )
    if context is not None:
        record.execution_context = context
    return record


def test_structured_formatter_includes_execution_context():
    output = StructuredFormatter().format(_record(context={"query_id": "abc", "database": 1}))

    data = json.loads(output)
    assert data["message"] == "Query completed"
    assert data["level"] == "INFO"
    assert data["query_id"] == "abc"
    assert data["database"] == 1


def test_standard_formatter_appends_context():
    output = StandardFormatter().format(_record(context={"query_id": "abc"}))

    assert output.endswith("Query completed [query_id=abc]")
    assert StandardFormatter().format(_record()).endswith("Query completed")


def test_contextual_logger_tags_records(caplog):
    caplog.set_level(logging.INFO, logger="tests.contextual")
    logger = get_contextual_logger("tests.contextual", {"query_id": "q1"})

    logger.info("hello")

    assert caplog.records[-1].execution_context == {"query_id": "q1"}


def test_configure_from_sets_root_level():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        configure_from(LoggingConfig(level="DEBUG", structured=True))
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, StructuredFormatter)
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
