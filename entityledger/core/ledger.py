"""
Ledger client facade.

LedgerStore is the boundary with the external append-only key/value store.
It exposes exactly what the entity handlers need:

- put(key, value): overwrite the current value, append a history fact
- get(key): current value, or b"" when the key is absent
- query(expression): rich query, returns a Cursor of QueryResult
- history(key): every mutation of a key, returns a Cursor of HistoryEntry

Two reference backends are provided: MemoryLedger (in-process, for tests and
scratch use) and SqliteLedger (file-backed). Either can be built with
rich_query=False to behave like a store without rich-query support.
"""

import sqlite3
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Generic, Iterator, List, Optional, TypeVar

from entityledger.core.errors import (
    QueryUnsupportedError,
    SelectorError,
    StoreReadError,
    StoreWriteError,
)
from entityledger.core.selector import matches_bytes, parse_query

T = TypeVar("T")

_NO_RICH_QUERY_MSG = "Rich queries are not supported by this ledger backend"


@dataclass(frozen=True)
class QueryResult:
    """A key/value pair produced by a rich query."""

    key: str
    value: bytes


@dataclass(frozen=True)
class HistoryEntry:
    """One mutation of a key, as recorded by the store."""

    tx_id: str
    value: bytes
    is_delete: bool
    timestamp_seconds: int
    timestamp_nanos: int


class Cursor(Generic[T]):
    """Forward-only handle over backend results.

    Must be released with close() (or by using it as a context manager).
    Closing is idempotent: the backend release hook runs at most once.
    """

    def __init__(self, source: Iterator[T], on_close: Optional[Callable[[], None]] = None):
        self._source = source
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> "Cursor[T]":
        return self

    def __next__(self) -> T:
        if self._closed:
            raise StoreReadError("Cursor is closed")
        return next(self._source)

    def close(self) -> None:
        """Release backend resources."""
        if self._closed:
            return
        self._closed = True
        source_close = getattr(self._source, "close", None)
        if source_close is not None:
            source_close()
        if self._on_close is not None:
            self._on_close()

    def __enter__(self) -> "Cursor[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _now() -> tuple:
    """Current wall-clock time as (seconds, nanos)."""
    return divmod(time.time_ns(), 1_000_000_000)


def _check_put(key: str, value: bytes) -> None:
    if not isinstance(key, str) or not key:
        raise StoreWriteError("Ledger key must be a non-empty string")
    if not isinstance(value, (bytes, bytearray)):
        raise StoreWriteError(f"Ledger value must be bytes, got {type(value).__name__}")


class LedgerStore(ABC):
    """Abstract base class for ledger backends."""

    def __init__(self, rich_query: bool = True):
        self.rich_query = rich_query

    @abstractmethod
    def put(self, key: str, value: bytes) -> None:
        """Write ``value`` under ``key`` (overwrite, no merge).

        Raises:
            StoreWriteError: On backend failure
        """
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the current value for ``key``, or b"" when absent."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key`` from current state, recording a tombstone."""
        pass

    @abstractmethod
    def query(self, expression: str) -> Cursor[QueryResult]:
        """Run a rich query.

        Raises:
            QueryUnsupportedError: If the backend has no rich-query support
            StoreReadError: If the expression is malformed
        """
        pass

    @abstractmethod
    def history(self, key: str) -> Cursor[HistoryEntry]:
        """Return every recorded mutation of ``key``, oldest first."""
        pass

    def _require_rich_query(self) -> None:
        if not self.rich_query:
            raise QueryUnsupportedError(_NO_RICH_QUERY_MSG)

    @staticmethod
    def _parse(expression: str):
        try:
            return parse_query(expression)
        except SelectorError as e:
            raise StoreReadError(f"Invalid query: {e}") from e


def _filter(pairs: Iterator[QueryResult], selector: Dict, limit: Optional[int]) -> Iterator[QueryResult]:
    """Lazily filter key/value pairs through a selector."""
    emitted = 0
    for pair in pairs:
        if limit is not None and emitted >= limit:
            return
        try:
            hit = matches_bytes(pair.value, selector)
        except SelectorError as e:
            raise StoreReadError(f"Invalid query: {e}") from e
        if hit:
            emitted += 1
            yield pair


class MemoryLedger(LedgerStore):
    """In-process ledger: a dict of current values plus per-key history."""

    def __init__(self, rich_query: bool = True):
        super().__init__(rich_query=rich_query)
        self._state: Dict[str, bytes] = {}
        self._history: Dict[str, List[HistoryEntry]] = {}

    def _append(self, key: str, value: bytes, is_delete: bool) -> None:
        seconds, nanos = _now()
        self._history.setdefault(key, []).append(
            HistoryEntry(
                tx_id=uuid.uuid4().hex,
                value=value,
                is_delete=is_delete,
                timestamp_seconds=seconds,
                timestamp_nanos=nanos,
            )
        )

    def put(self, key: str, value: bytes) -> None:
        _check_put(key, value)
        value = bytes(value)
        self._state[key] = value
        self._append(key, value, is_delete=False)

    def get(self, key: str) -> bytes:
        return self._state.get(key, b"")

    def delete(self, key: str) -> None:
        self._state.pop(key, None)
        self._append(key, b"", is_delete=True)

    def query(self, expression: str) -> Cursor[QueryResult]:
        self._require_rich_query()
        selector, limit = self._parse(expression)
        snapshot = [QueryResult(k, self._state[k]) for k in sorted(self._state)]
        return Cursor(_filter(iter(snapshot), selector, limit))

    def history(self, key: str) -> Cursor[HistoryEntry]:
        return Cursor(iter(list(self._history.get(key, []))))


class SqliteLedger(LedgerStore):
    """SQLite-backed ledger with an append-only history table."""

    def __init__(self, db_path: Path, rich_query: bool = True):
        """Initialize ledger with database path.

        Args:
            db_path: Path to SQLite database file
            rich_query: Whether query() is supported
        """
        super().__init__(rich_query=rich_query)
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.executescript("""
                -- Current state, one row per key
                CREATE TABLE IF NOT EXISTS state (
                    key TEXT PRIMARY KEY,
                    value BLOB NOT NULL
                );

                -- Append-only mutation log
                CREATE TABLE IF NOT EXISTS history (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    key TEXT NOT NULL,
                    tx_id TEXT NOT NULL,
                    value BLOB,
                    is_delete INTEGER NOT NULL DEFAULT 0,
                    ts_seconds INTEGER NOT NULL,
                    ts_nanos INTEGER NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_history_key ON history(key, seq);
            """)

    def _record(self, conn: sqlite3.Connection, key: str, value: bytes, is_delete: bool) -> None:
        seconds, nanos = _now()
        conn.execute(
            """
            INSERT INTO history (key, tx_id, value, is_delete, ts_seconds, ts_nanos)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (key, uuid.uuid4().hex, value, int(is_delete), seconds, nanos),
        )

    def put(self, key: str, value: bytes) -> None:
        _check_put(key, value)
        value = bytes(value)
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO state (key, value) VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET value = excluded.value
                    """,
                    (key, value),
                )
                self._record(conn, key, value, is_delete=False)
        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to write key {key!r}: {e}") from e

    def get(self, key: str) -> bytes:
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute("SELECT value FROM state WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise StoreReadError(f"Failed to read key {key!r}: {e}") from e
        return bytes(row[0]) if row else b""

    def delete(self, key: str) -> None:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM state WHERE key = ?", (key,))
                self._record(conn, key, b"", is_delete=True)
        except sqlite3.Error as e:
            raise StoreWriteError(f"Failed to delete key {key!r}: {e}") from e

    def _open_cursor(self, sql: str, params: tuple, convert: Callable) -> Cursor:
        """Open a connection whose rows are fetched lazily by the cursor."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StoreReadError(f"Failed to open cursor: {e}") from e

        try:
            rows = conn.execute(sql, params)
        except sqlite3.Error as e:
            conn.close()
            raise StoreReadError(f"Failed to open cursor: {e}") from e

        def _iter_rows():
            try:
                for row in rows:
                    yield convert(row)
            except sqlite3.Error as e:
                raise StoreReadError(f"Cursor read failed: {e}") from e

        return Cursor(_iter_rows(), on_close=conn.close)

    def query(self, expression: str) -> Cursor[QueryResult]:
        self._require_rich_query()
        selector, limit = self._parse(expression)
        cursor = self._open_cursor(
            "SELECT key, value FROM state ORDER BY key",
            (),
            lambda row: QueryResult(row[0], bytes(row[1])),
        )
        return Cursor(_filter(cursor, selector, limit), on_close=cursor.close)

    def history(self, key: str) -> Cursor[HistoryEntry]:
        return self._open_cursor(
            """
            SELECT tx_id, value, is_delete, ts_seconds, ts_nanos
            FROM history WHERE key = ? ORDER BY seq
            """,
            (key,),
            lambda row: HistoryEntry(
                tx_id=row[0],
                value=bytes(row[1]) if row[1] is not None else b"",
                is_delete=bool(row[2]),
                timestamp_seconds=row[3],
                timestamp_nanos=row[4],
            ),
        )


__all__ = [
    "QueryResult",
    "HistoryEntry",
    "Cursor",
    "LedgerStore",
    "MemoryLedger",
    "SqliteLedger",
]
