"""Streaming results writer interface and format registry."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO, Type

from ..catalog.schema import ResultMetadata
from ..errors import ConfigurationError, StreamingError

logger = logging.getLogger(__name__)


class StreamingResultsWriter(ABC):
    """Incremental serializer of one query result into a text sink.

    Lifecycle, exactly once per execution and strictly in order:
    ``begin(metadata)``, ``write_row(row, row_index)`` per row, then
    ``finish(final_metadata)``. ``finish`` always releases the sink;
    ``close`` releases it without writing a trailer.
    """

    format_name = ""
    content_type = "application/octet-stream"

    def __init__(self, sink: Optional[TextIO], close_sink: bool = True):
        """Initialize writer.

        Args:
            sink: Text stream receiving the serialized result
            close_sink: Close the sink on release; false for borrowed streams
                such as stdout, which are only flushed
        """
        self.sink = sink
        self.close_sink = close_sink
        self.started = False
        self.finished = False
        self.closed = False
        self.rows_written = 0

    def begin(self, metadata: ResultMetadata) -> None:
        """Write and flush the preamble."""
        if self.started or self.closed:
            raise StreamingError(f"{self.format_name} writer already started")
        self.started = True
        self.write_preamble(metadata)
        self.flush()

    def write_row(self, row: Sequence[Any], row_index: int) -> None:
        """Append exactly one record."""
        if not self.started:
            raise StreamingError("write_row called before begin")
        if self.finished or self.closed:
            raise StreamingError("write_row called after finish")
        self.write_record(row, row_index)
        self.rows_written += 1

    def finish(self, final_metadata: Mapping[str, Any]) -> None:
        """Write the trailer, then release the sink on every path."""
        if self.finished:
            raise StreamingError(f"{self.format_name} writer already finished")
        self.finished = True
        try:
            if self.started and not self.closed:
                self.write_trailer(final_metadata)
        finally:
            self.close()

    def close(self) -> None:
        """Release the sink; safe to call more than once."""
        if self.closed:
            return
        self.closed = True
        if self.sink is None:
            return
        try:
            self.sink.flush()
        finally:
            if self.close_sink:
                self.sink.close()

    def flush(self) -> None:
        if self.sink is not None:
            self.sink.flush()

    @abstractmethod
    def write_preamble(self, metadata: ResultMetadata) -> None:
        """Write format-specific leading tokens."""
        pass

    @abstractmethod
    def write_record(self, row: Sequence[Any], row_index: int) -> None:
        """Write one row; ``row_index`` is zero-based."""
        pass

    @abstractmethod
    def write_trailer(self, final_metadata: Mapping[str, Any]) -> None:
        """Write closing tokens and metadata not written in the preamble."""
        pass


_WRITERS: Dict[str, Type[StreamingResultsWriter]] = {}


def register_writer(format_name: str, writer_cls: Type[StreamingResultsWriter]) -> None:
    """Register a writer class under a format tag."""
    _WRITERS[format_name] = writer_cls


def writer_class(format_name: str) -> Type[StreamingResultsWriter]:
    writer_cls = _WRITERS.get(format_name)
    if writer_cls is None:
        raise ConfigurationError(
            f"Unknown results format '{format_name}'; available: {available_formats()}"
        )
    return writer_cls


def results_writer(
    format_name: str, sink: Optional[TextIO] = None, close_sink: bool = True
) -> StreamingResultsWriter:
    """Create the writer for ``format_name`` writing into ``sink``."""
    return writer_class(format_name)(sink, close_sink=close_sink)


def stream_options(format_name: str) -> Dict[str, Any]:
    """Transport options of a format, such as its content type."""
    return {"content_type": writer_class(format_name).content_type}


def available_formats() -> List[str]:
    return sorted(_WRITERS)
