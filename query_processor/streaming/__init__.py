"""Streaming results writers."""

from .interface import (
    StreamingResultsWriter,
    available_formats,
    register_writer,
    results_writer,
    stream_options,
    writer_class,
)
from .csv_writer import CsvResultsWriter
from .json_writer import JsonResultsWriter
from .collect import CollectingResultsWriter

register_writer(CsvResultsWriter.format_name, CsvResultsWriter)
register_writer(JsonResultsWriter.format_name, JsonResultsWriter)
register_writer(CollectingResultsWriter.format_name, CollectingResultsWriter)

__all__ = [
    "StreamingResultsWriter",
    "CsvResultsWriter",
    "JsonResultsWriter",
    "CollectingResultsWriter",
    "available_formats",
    "register_writer",
    "results_writer",
    "stream_options",
    "writer_class",
]
