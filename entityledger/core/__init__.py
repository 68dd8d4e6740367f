"""Core abstractions for entityledger: records, ledger facade, serialization."""

from entityledger.core.errors import (
    ErrorCode,
    EntityLedgerError,
    ArityError,
    UnknownOperationError,
    UnknownKindError,
    DecodeError,
    StoreWriteError,
    StoreReadError,
    QueryUnsupportedError,
)
from entityledger.core.records import Record, User, Activity, register_kind, encode, decode
from entityledger.core.ledger import (
    Cursor,
    HistoryEntry,
    LedgerStore,
    MemoryLedger,
    QueryResult,
    SqliteLedger,
)
from entityledger.core.serializer import history_to_json, query_results_to_json
from entityledger.core.observability import InvocationLogger, LogEntry

__all__ = [
    # Errors
    "ErrorCode",
    "EntityLedgerError",
    "ArityError",
    "UnknownOperationError",
    "UnknownKindError",
    "DecodeError",
    "StoreWriteError",
    "StoreReadError",
    "QueryUnsupportedError",
    # Records
    "Record",
    "User",
    "Activity",
    "register_kind",
    "encode",
    "decode",
    # Ledger
    "Cursor",
    "HistoryEntry",
    "LedgerStore",
    "MemoryLedger",
    "QueryResult",
    "SqliteLedger",
    # Serialization
    "history_to_json",
    "query_results_to_json",
    # Observability
    "InvocationLogger",
    "LogEntry",
]
