"""Name-driven operation dispatch and the response envelope."""

from entityledger.dispatch.envelope import Envelope, Failure, Success
from entityledger.dispatch.dispatcher import (
    Dispatcher,
    HandlerContext,
    Operation,
    check_arity,
    operation,
    registered_operations,
)

# Import handlers to register them
from entityledger.dispatch import handlers

__all__ = [
    "Envelope",
    "Success",
    "Failure",
    "Dispatcher",
    "HandlerContext",
    "Operation",
    "check_arity",
    "operation",
    "registered_operations",
    "handlers",
]
