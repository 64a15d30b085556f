"""Structured-document (JSON) results writer."""

import base64
import datetime
import decimal
import json
import math
import uuid
from typing import Any, Mapping, Optional, Sequence

from ..catalog.schema import ResultMetadata
from .interface import StreamingResultsWriter


def _non_finite(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    return "Infinity" if value > 0 else "-Infinity"


def _finite(value: Any) -> Any:
    """Replace non-finite floats, which strict JSON cannot hold, with strings."""
    if isinstance(value, float):
        return value if math.isfinite(value) else _non_finite(value)
    if isinstance(value, (list, tuple)):
        return [_finite(item) for item in value]
    if isinstance(value, dict):
        return {key: _finite(item) for key, item in value.items()}
    return value


def _json_default(value: Any) -> Any:
    """Serialize values the json module does not handle natively."""
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return value.total_seconds()
    if isinstance(value, decimal.Decimal):
        return _finite(float(value))
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def serialized_kvs(data: Optional[Mapping[str, Any]]) -> Optional[str]:
    """``{"a": 100, "b": 200}`` -> ``"a":100,"b":200``; None when empty."""
    if not data:
        return None
    text = json.dumps(
        _finite(dict(data)), default=_json_default, separators=(",", ":"), allow_nan=False
    )
    return text[1:-1]


class JsonResultsWriter(StreamingResultsWriter):
    """Writes ``{"data":{"rows":[...], <data keys>}, <top-level keys>}``."""

    format_name = "json"
    content_type = "application/json; charset=utf-8"

    def write_preamble(self, metadata: ResultMetadata) -> None:
        self.sink.write('{"data":{"rows":[\n')

    def write_record(self, row: Sequence[Any], row_index: int) -> None:
        if row_index != 0:
            self.sink.write(",\n")
        self.sink.write(json.dumps(_finite(list(row)), default=_json_default, allow_nan=False))
        self.flush()

    def write_trailer(self, final_metadata: Mapping[str, Any]) -> None:
        data = dict(final_metadata.get("data") or {})
        data.pop("rows", None)
        other = {key: value for key, value in final_metadata.items() if key != "data"}
        data_kvs = serialized_kvs(data)
        other_kvs = serialized_kvs(other)
        # close data.rows
        self.sink.write("\n]")
        if data_kvs:
            self.sink.write(",\n")
            self.sink.write(data_kvs)
        # close data
        self.sink.write("}")
        if other_kvs:
            self.sink.write(",\n")
            self.sink.write(other_kvs)
        self.sink.write("}")
