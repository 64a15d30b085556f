"""In-memory results writer for programmatic callers."""

from typing import Any, Dict, List, Mapping, Optional, Sequence, TextIO

from ..catalog.schema import ResultMetadata
from .interface import StreamingResultsWriter


class CollectingResultsWriter(StreamingResultsWriter):
    """Keeps rows and metadata in memory instead of serializing them.

    Unlike the other writers this buffers the whole result; use it for
    bounded results only.
    """

    format_name = "api"
    content_type = "application/json; charset=utf-8"

    def __init__(self, sink: Optional[TextIO] = None, close_sink: bool = True):
        super().__init__(sink, close_sink)
        self.metadata: Optional[ResultMetadata] = None
        self.rows: List[List[Any]] = []
        self.final_metadata: Dict[str, Any] = {}

    def write_preamble(self, metadata: ResultMetadata) -> None:
        self.metadata = metadata

    def write_record(self, row: Sequence[Any], row_index: int) -> None:
        self.rows.append(list(row))

    def write_trailer(self, final_metadata: Mapping[str, Any]) -> None:
        self.final_metadata = dict(final_metadata)

    def result(self) -> Dict[str, Any]:
        """The full result document, rows included."""
        document = dict(self.final_metadata)
        data = dict(document.get("data") or {})
        data["rows"] = self.rows
        document["data"] = data
        return document
