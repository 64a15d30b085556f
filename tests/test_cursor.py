"""Tests for the lazy row cursor."""

import pyarrow as pa
import pytest

from query_processor.catalog import BaseType
from query_processor.drivers import RowCursor
from query_processor.drivers.cursor import base_type_for_arrow
from query_processor.errors import QueryExecutionError


def _batches():
    schema = pa.schema([("id", pa.int64()), ("name", pa.string())])
    yield pa.record_batch([pa.array([1, 2]), pa.array(["a", "b"])], schema=schema)
    yield pa.record_batch([pa.array([3]), pa.array([None])], schema=schema)


def test_rows_from_batches():
    with RowCursor.from_batches(_batches()) as cursor:
        rows = list(cursor)

    assert rows == [[1, "a"], [2, "b"], [3, None]]
    assert cursor.closed


def test_single_pass():
    cursor = RowCursor([[1], [2]])
    assert list(cursor) == [[1], [2]]

    with pytest.raises(QueryExecutionError):
        iter(cursor)


def test_close_runs_release_once():
    released = []
    cursor = RowCursor.from_batches(_batches(), on_close=lambda: released.append(True))

    iterator = iter(cursor)
    assert next(iterator) == [1, "a"]
    cursor.close()
    cursor.close()

    assert released == [True]
    assert list(iterator) == []


def test_closed_cursor_cannot_be_iterated():
    cursor = RowCursor([[1]])
    cursor.close()

    with pytest.raises(QueryExecutionError):
        iter(cursor)


def test_release_runs_when_consumer_fails():
    released = []
    cursor = RowCursor([[1], [2]], on_close=lambda: released.append(True))

    with pytest.raises(RuntimeError):
        with cursor:
            for row in cursor:
                raise RuntimeError("client went away")

    assert released == [True]


@pytest.mark.parametrize(
    "data_type, expected",
    [
        (pa.int32(), BaseType.INTEGER),
        (pa.int64(), BaseType.BIG_INTEGER),
        (pa.float64(), BaseType.FLOAT),
        (pa.decimal128(10, 2), BaseType.DECIMAL),
        (pa.string(), BaseType.TEXT),
        (pa.bool_(), BaseType.BOOLEAN),
        (pa.timestamp("us"), BaseType.DATETIME),
        (pa.date32(), BaseType.DATE),
        (pa.time64("us"), BaseType.TIME),
        (pa.list_(pa.int32()), BaseType.UNKNOWN),
    ],
)
def test_base_type_for_arrow(data_type, expected):
    assert base_type_for_arrow(data_type) is expected
