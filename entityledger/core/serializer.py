"""
Cursor-to-array serialization.

Turns a query or history cursor into one JSON array, writing each element as
it is read instead of collecting the results first. Stored record bytes are
trusted to be JSON and are spliced in verbatim, byte for byte: a malformed
stored payload comes out exactly as it went in.

Element layout matches what existing clients parse:

    {"Key":"u1", "Record":{...}}
    {"TxId":"ab12", "Value":{...}, "Timestamp":"2024-01-02 03:04:05.5 +0000 UTC", "IsDelete":"false"}

The cursor is always closed, whether the array completes or a read fails.
On failure the partially written buffer is dropped and the error propagates.
"""

import io
import json
from datetime import datetime, timezone
from typing import TextIO

from entityledger.core.ledger import Cursor, HistoryEntry, QueryResult


class JsonArrayWriter:
    """Streaming writer for a JSON array of pre-rendered elements."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.count = 0

    def open(self) -> None:
        self.stream.write("[")

    def element(self, text: str) -> None:
        # Comma before every element except the first
        if self.count:
            self.stream.write(",")
        self.stream.write(text)
        self.count += 1

    def close(self) -> None:
        self.stream.write("]")


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def _raw(value: bytes) -> str:
    # surrogateescape keeps undecodable bytes intact through the text buffer
    return value.decode("utf-8", errors="surrogateescape")


def format_timestamp(seconds: int, nanos: int) -> str:
    """Render a store timestamp like Go's time.Time.String() in UTC.

    Examples:
        (1700000000, 0) -> "2023-11-14 22:13:20 +0000 UTC"
        (1700000000, 500000000) -> "2023-11-14 22:13:20.5 +0000 UTC"
    """
    base = datetime.fromtimestamp(seconds, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    fraction = f"{nanos:09d}".rstrip("0") if nanos else ""
    if fraction:
        base = f"{base}.{fraction}"
    return f"{base} +0000 UTC"


def render_query_result(result: QueryResult) -> str:
    """Render one query element."""
    return '{"Key":' + _quote(result.key) + ', "Record":' + _raw(result.value) + "}"


def render_history_entry(entry: HistoryEntry) -> str:
    """Render one history element; tombstones always carry a null value."""
    value = "null" if entry.is_delete else _raw(entry.value)
    timestamp = format_timestamp(entry.timestamp_seconds, entry.timestamp_nanos)
    return (
        '{"TxId":' + _quote(entry.tx_id)
        + ', "Value":' + value
        + ', "Timestamp":' + _quote(timestamp)
        + ', "IsDelete":' + _quote("true" if entry.is_delete else "false")
        + "}"
    )


def write_query_results(cursor: Cursor[QueryResult], stream: TextIO) -> int:
    """Stream a query cursor into ``stream`` as a JSON array.

    Returns:
        Number of elements written
    """
    with cursor:
        writer = JsonArrayWriter(stream)
        writer.open()
        for result in cursor:
            writer.element(render_query_result(result))
        writer.close()
    return writer.count


def write_history(cursor: Cursor[HistoryEntry], stream: TextIO) -> int:
    """Stream a history cursor into ``stream`` as a JSON array.

    Returns:
        Number of elements written
    """
    with cursor:
        writer = JsonArrayWriter(stream)
        writer.open()
        for entry in cursor:
            writer.element(render_history_entry(entry))
        writer.close()
    return writer.count


def query_results_to_json(cursor: Cursor[QueryResult]) -> bytes:
    """Serialize a query cursor to JSON array bytes (nothing on failure)."""
    buffer = io.StringIO()
    write_query_results(cursor, buffer)
    return buffer.getvalue().encode("utf-8", errors="surrogateescape")


def history_to_json(cursor: Cursor[HistoryEntry]) -> bytes:
    """Serialize a history cursor to JSON array bytes (nothing on failure)."""
    buffer = io.StringIO()
    write_history(cursor, buffer)
    return buffer.getvalue().encode("utf-8", errors="surrogateescape")


__all__ = [
    "JsonArrayWriter",
    "format_timestamp",
    "render_query_result",
    "render_history_entry",
    "write_query_results",
    "write_history",
    "query_results_to_json",
    "history_to_json",
]
