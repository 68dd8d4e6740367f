"""
entityledger - Record management over an append-only key/value ledger

Saves typed records, reads them back by key or rich query, and renders
their change history. Requests arrive as an operation name plus string
arguments and always come back as a Success or Failure envelope.

Core components:
- Record codec: pydantic record kinds tagged by docType
- LedgerStore: facade over put/get/query/history (memory and SQLite backends)
- Serializer: streams query and history cursors into JSON arrays
- Dispatcher: resolves operation names to registered handlers
- InvocationLogger: phase-based logging of every dispatch
"""

__version__ = "0.1.0"

from entityledger.core import (
    ErrorCode,
    EntityLedgerError,
    Record,
    User,
    Activity,
    register_kind,
    encode,
    decode,
    Cursor,
    HistoryEntry,
    LedgerStore,
    MemoryLedger,
    QueryResult,
    SqliteLedger,
    InvocationLogger,
)
from entityledger.dispatch import Dispatcher, Envelope, Failure, Success, operation

__all__ = [
    # Core
    "ErrorCode",
    "EntityLedgerError",
    "Record",
    "User",
    "Activity",
    "register_kind",
    "encode",
    "decode",
    "Cursor",
    "HistoryEntry",
    "LedgerStore",
    "MemoryLedger",
    "QueryResult",
    "SqliteLedger",
    "InvocationLogger",
    # Dispatch
    "Dispatcher",
    "Envelope",
    "Success",
    "Failure",
    "operation",
]
