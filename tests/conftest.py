"""
Shared pytest fixtures for entityledger tests.

Provides fixtures for:
- In-memory and SQLite ledgers
- Dispatchers with and without invocation logging
- Cursors that count releases and fail on demand
- Sample record payloads
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import pytest

from entityledger.core.errors import StoreReadError
from entityledger.core.ledger import Cursor, HistoryEntry, MemoryLedger, QueryResult, SqliteLedger
from entityledger.core.observability import InvocationLogger
from entityledger.dispatch import Dispatcher


class CloseCounter:
    """Release hook that records how many times it ran."""

    def __init__(self):
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


def make_cursor(items: Iterable[Any], fail_after: Optional[int] = None):
    """Build a Cursor over ``items``, optionally failing after N items.

    Returns:
        Tuple of (cursor, close_counter)
    """
    counter = CloseCounter()

    def _source():
        for i, item in enumerate(items):
            if i == fail_after:
                raise StoreReadError("simulated read failure")
            yield item
        if fail_after is not None:
            raise StoreReadError("simulated read failure")

    return Cursor(_source(), on_close=counter), counter


def history_entry(
    tx_id: str = "tx1",
    value: bytes = b'{"docType":"User","id":"u1"}',
    is_delete: bool = False,
    seconds: int = 1700000000,
    nanos: int = 0,
) -> HistoryEntry:
    return HistoryEntry(
        tx_id=tx_id,
        value=value,
        is_delete=is_delete,
        timestamp_seconds=seconds,
        timestamp_nanos=nanos,
    )


def query_result(key: str, record: Dict[str, Any]) -> QueryResult:
    return QueryResult(key=key, value=json.dumps(record, separators=(",", ":")).encode())


@pytest.fixture
def ledger() -> MemoryLedger:
    """Empty in-memory ledger with rich query support."""
    return MemoryLedger()


@pytest.fixture
def sqlite_ledger(tmp_path: Path) -> SqliteLedger:
    """Empty SQLite ledger in a temp directory."""
    return SqliteLedger(tmp_path / "ledger.db")


@pytest.fixture(params=["memory", "sqlite"])
def any_ledger(request, tmp_path: Path):
    """Each reference backend in turn."""
    if request.param == "memory":
        return MemoryLedger()
    return SqliteLedger(tmp_path / "ledger.db")


@pytest.fixture
def invocation_log(tmp_path: Path) -> InvocationLogger:
    return InvocationLogger(tmp_path / "logs.db")


@pytest.fixture
def dispatcher(ledger: MemoryLedger) -> Dispatcher:
    """Dispatcher over the in-memory ledger, no logging."""
    return Dispatcher(ledger)


@pytest.fixture
def logged_dispatcher(ledger: MemoryLedger, invocation_log: InvocationLogger) -> Dispatcher:
    return Dispatcher(ledger, log=invocation_log)


@pytest.fixture
def user_fields() -> Dict[str, Any]:
    return {
        "docType": "User",
        "id": "u1",
        "firstName": "Ana",
        "lastName": "Silva",
        "email": "ana@example.com",
        "phoneNumber": "+15550001111",
        "userType": "member",
        "dateOfRegistration": "2024-01-15",
    }


@pytest.fixture
def activity_fields() -> Dict[str, Any]:
    return {"docType": "Activity", "id": "a1", "dateOfActivity": "2024-02-01"}


@pytest.fixture
def populated_ledger(ledger: MemoryLedger) -> MemoryLedger:
    """Ledger holding two users and one activity."""
    records: List[Dict[str, Any]] = [
        {"docType": "User", "id": "u1", "firstName": "Ana", "userType": "member"},
        {"docType": "User", "id": "u2", "firstName": "Ben", "userType": "admin"},
        {"docType": "Activity", "id": "a1", "dateOfActivity": "2024-02-01"},
    ]
    for record in records:
        ledger.put(record["id"], json.dumps(record, separators=(",", ":")).encode())
    return ledger
