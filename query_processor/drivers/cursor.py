"""Lazy, single-pass row cursor over native query results."""

import logging
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

import pyarrow as pa

from ..catalog.schema import BaseType
from ..errors import QueryExecutionError

logger = logging.getLogger(__name__)

Row = List[Any]


class RowCursor:
    """Iterator of result rows that can be consumed exactly once.

    ``close()`` stops the underlying source and runs ``on_close`` (which
    releases the native cursor or connection). It is idempotent and is also
    invoked when the cursor is used as a context manager.
    """

    def __init__(
        self,
        rows: Iterable[Sequence[Any]],
        on_close: Optional[Callable[[], None]] = None,
    ):
        self._source = rows
        self._on_close = on_close
        self._iterator: Optional[Iterator[Row]] = None
        self._closed = False

    @classmethod
    def from_batches(
        cls,
        batches: Iterable[pa.RecordBatch],
        on_close: Optional[Callable[[], None]] = None,
    ) -> "RowCursor":
        """Build a cursor yielding the rows of Arrow record batches."""
        return cls(_batch_rows(batches), on_close=on_close)

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[Row]:
        if self._iterator is not None:
            raise QueryExecutionError("Row cursor can only be iterated once")
        if self._closed:
            raise QueryExecutionError("Row cursor is closed")
        self._iterator = self._rows()
        return self._iterator

    def _rows(self) -> Iterator[Row]:
        for row in self._source:
            if self._closed:
                return
            yield list(row)

    def close(self) -> None:
        """Release the row source; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        try:
            for source in (self._iterator, self._source):
                close = getattr(source, "close", None)
                if close is not None:
                    close()
        finally:
            if self._on_close is not None:
                self._on_close()

    def __enter__(self) -> "RowCursor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def _batch_rows(batches: Iterable[pa.RecordBatch]) -> Iterator[Row]:
    """Yield rows of each batch, converting one batch at a time."""
    for batch in batches:
        columns = [batch.column(index).to_pylist() for index in range(batch.num_columns)]
        for row_index in range(batch.num_rows):
            yield [column[row_index] for column in columns]


def base_type_for_arrow(data_type: pa.DataType) -> BaseType:
    """Map an Arrow type to a base type."""
    if pa.types.is_integer(data_type):
        if data_type.bit_width >= 64:
            return BaseType.BIG_INTEGER
        return BaseType.INTEGER
    if pa.types.is_floating(data_type):
        return BaseType.FLOAT
    if pa.types.is_decimal(data_type):
        return BaseType.DECIMAL
    if pa.types.is_string(data_type) or pa.types.is_large_string(data_type):
        return BaseType.TEXT
    if pa.types.is_boolean(data_type):
        return BaseType.BOOLEAN
    if pa.types.is_timestamp(data_type):
        return BaseType.DATETIME
    if pa.types.is_date(data_type):
        return BaseType.DATE
    if pa.types.is_time(data_type):
        return BaseType.TIME
    return BaseType.UNKNOWN
