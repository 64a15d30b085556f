"""Delimited-text (CSV) results writer."""

import csv
from typing import Any, Mapping, Optional, Sequence, TextIO

from ..catalog.schema import ResultMetadata
from .interface import StreamingResultsWriter


class CsvResultsWriter(StreamingResultsWriter):
    """Header of column display names, then one record per row."""

    format_name = "csv"
    content_type = "text/csv"

    def __init__(self, sink: Optional[TextIO], close_sink: bool = True):
        super().__init__(sink, close_sink)
        self._csv = csv.writer(sink, lineterminator="\n")

    def write_preamble(self, metadata: ResultMetadata) -> None:
        self._csv.writerow([col.display_name for col in metadata.cols])

    def write_record(self, row: Sequence[Any], row_index: int) -> None:
        self._csv.writerow(row)

    def write_trailer(self, final_metadata: Mapping[str, Any]) -> None:
        pass
