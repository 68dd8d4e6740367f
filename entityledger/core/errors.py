"""Error taxonomy for entityledger.

Every fault a handler can hit derives from EntityLedgerError and carries an
ErrorCode. The dispatcher turns these into Failure envelopes.
"""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Structured error codes for failure responses."""

    ARITY_ERROR = "arity_error"  # Wrong argument count
    UNKNOWN_OPERATION = "unknown_operation"  # No handler for name
    UNKNOWN_KIND = "unknown_kind"  # Unrecognized record kind
    DECODE_ERROR = "decode_error"  # Payload doesn't match kind shape
    STORE_WRITE_ERROR = "store_write_error"  # Backend write failed
    STORE_READ_ERROR = "store_read_error"  # Backend read failed
    QUERY_UNSUPPORTED = "query_unsupported"  # Backend has no rich query
    INTERNAL_ERROR = "internal_error"  # Anything else


class EntityLedgerError(Exception):
    """Base class for all reportable entityledger faults."""

    code = ErrorCode.INTERNAL_ERROR


class ArityError(EntityLedgerError):
    """Handler called with the wrong number of arguments."""

    code = ErrorCode.ARITY_ERROR

    def __init__(self, expected: int, got: Optional[int] = None):
        self.expected = expected
        self.got = got
        super().__init__(f"Incorrect number of arguments. Expecting {expected}")


class UnknownOperationError(EntityLedgerError):
    """No operation is registered under the requested name."""

    code = ErrorCode.UNKNOWN_OPERATION

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Invalid operation name: {name}")


class UnknownKindError(EntityLedgerError):
    """Record kind has no registered model."""

    code = ErrorCode.UNKNOWN_KIND

    def __init__(self, kind: str, known: Optional[list] = None):
        self.kind = kind
        message = f"Unknown record kind: {kind!r}"
        if known:
            message += f". Available: {known}"
        super().__init__(message)


class DecodeError(EntityLedgerError):
    """Payload does not match the shape expected for its kind."""

    code = ErrorCode.DECODE_ERROR


class StoreWriteError(EntityLedgerError):
    """The ledger backend rejected or failed a write."""

    code = ErrorCode.STORE_WRITE_ERROR


class StoreReadError(EntityLedgerError):
    """The ledger backend failed a read, query, or history scan."""

    code = ErrorCode.STORE_READ_ERROR


class QueryUnsupportedError(EntityLedgerError):
    """The ledger backend has no rich-query support."""

    code = ErrorCode.QUERY_UNSUPPORTED


class SelectorError(ValueError):
    """Malformed query expression or selector."""


__all__ = [
    "ErrorCode",
    "EntityLedgerError",
    "ArityError",
    "UnknownOperationError",
    "UnknownKindError",
    "DecodeError",
    "StoreWriteError",
    "StoreReadError",
    "QueryUnsupportedError",
    "SelectorError",
]
