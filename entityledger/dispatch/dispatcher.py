"""
Command dispatcher.

Routes an (operation name, argument list) request to a registered handler and
always answers with an Envelope:

    Idle -> Resolving -> Invoking -> Succeeded | Failed

Operations register themselves by name with the ``operation`` decorator:

    @operation("GetEntity", arity=1)
    def get_entity(ctx: HandlerContext, args: Sequence[str]) -> Envelope:
        ctx.check_arity(args)
        ...

A Dispatcher snapshots the registry when it is built, so its operation table
never changes afterwards. Handlers receive the raw argument list and check it
against the arity their operation was registered with.

Invocation-log writes go through ``HandlerContext.record``. A log that cannot
be written is noted in ``log_failures`` and never changes an operation's
outcome.
"""

import sqlite3
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from entityledger.core.errors import (
    ArityError,
    EntityLedgerError,
    ErrorCode,
    UnknownOperationError,
)
from entityledger.core.ledger import LedgerStore
from entityledger.core.observability import InvocationLogger
from entityledger.dispatch.envelope import Envelope, Failure, Success


@dataclass(frozen=True)
class HandlerContext:
    """Collaborators available to a handler during one invocation."""

    ledger: LedgerStore
    log: Optional[InvocationLogger] = None
    operation: Optional["Operation"] = None
    log_failures: List[str] = field(default_factory=list, compare=False)

    def check_arity(self, args: Sequence[str]) -> None:
        """Check ``args`` against the running operation's declared arity."""
        if self.operation is None:
            raise RuntimeError("check_arity called outside a dispatched operation")
        check_arity(args, self.operation.arity)

    def record(self, write: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        """Call an InvocationLogger method such as ``InvocationLogger.log_read``.

        Does nothing without a logger. SQLite errors are kept in
        ``log_failures`` instead of propagating.
        """
        if self.log is None:
            return
        try:
            write(self.log, *args, **kwargs)
        except sqlite3.Error as e:
            self.log_failures.append(f"{write.__name__}: {type(e).__name__}: {e}")


Handler = Callable[[HandlerContext, Sequence[str]], Envelope]


@dataclass(frozen=True)
class Operation:
    """A named handler with its declared argument count."""

    name: str
    arity: int
    handler: Handler


# Operation registry for dispatch by name
_OPERATION_REGISTRY: Dict[str, Operation] = {}


def operation(name: str, arity: int):
    """Decorator to register a handler under an operation name."""
    def decorator(func):
        _OPERATION_REGISTRY[name] = Operation(name=name, arity=arity, handler=func)
        return func
    return decorator


def registered_operations() -> Dict[str, Operation]:
    """Return a copy of the operation registry."""
    return dict(_OPERATION_REGISTRY)


def check_arity(args: Sequence[str], expected: int) -> None:
    """Raise ArityError unless exactly ``expected`` arguments were given."""
    if len(args) != expected:
        raise ArityError(expected, len(args))


def _message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class Dispatcher:
    """Resolves operation names to handlers and wraps every outcome."""

    def __init__(
        self,
        ledger: LedgerStore,
        log: Optional[InvocationLogger] = None,
        operations: Optional[Mapping[str, Operation]] = None,
    ):
        """Build a dispatcher over a ledger.

        Args:
            ledger: Ledger backend handed to handlers
            log: Optional invocation logger
            operations: Operation table (defaults to everything registered)
        """
        self.context = HandlerContext(ledger=ledger, log=log)
        self._operations: Dict[str, Operation] = dict(
            operations if operations is not None else registered_operations()
        )

    @property
    def log_failures(self) -> List[str]:
        """Invocation-log writes that failed, oldest first."""
        return self.context.log_failures

    def operations(self) -> List[Dict[str, Any]]:
        """List operation names with their arities, sorted by name."""
        return [
            {"name": op.name, "arity": op.arity}
            for op in sorted(self._operations.values(), key=lambda o: o.name)
        ]

    def resolve(self, name: str) -> Operation:
        """Look up an operation by exact name.

        Raises:
            UnknownOperationError: If no operation has that name
        """
        op = self._operations.get(name)
        if op is None:
            raise UnknownOperationError(name)
        return op

    def invoke(self, name: str, args: Sequence[str] = ()) -> Envelope:
        """Dispatch one request. Never raises."""
        try:
            return self._invoke(name, list(args))
        except Exception as e:
            return Failure(f"Internal error: {type(e).__name__}: {_message(e)}")

    def _invoke(self, name: str, args: List[str]) -> Envelope:
        try:
            op = self.resolve(name)
        except UnknownOperationError as e:
            return self._fail(name, args, e.code, _message(e))

        # log_failures list is shared with the per-call context
        ctx = replace(self.context, operation=op)
        try:
            result = op.handler(ctx, args)
        except EntityLedgerError as e:
            return self._fail(name, args, e.code, _message(e))
        except Exception as e:
            return self._fail(
                name,
                args,
                ErrorCode.INTERNAL_ERROR,
                f"Internal error: {type(e).__name__}: {_message(e)}",
            )

        if not isinstance(result, (Success, Failure)):
            return self._fail(
                name,
                args,
                ErrorCode.INTERNAL_ERROR,
                f"Handler for {name} returned {type(result).__name__}, not an envelope",
            )

        if isinstance(result, Failure):
            return self._fail(name, args, ErrorCode.INTERNAL_ERROR, result.message, result)

        self.context.record(InvocationLogger.log_invoke, name, len(args), "success")
        return result

    def _fail(
        self,
        name: str,
        args: List[str],
        code: ErrorCode,
        message: str,
        envelope: Optional[Failure] = None,
    ) -> Failure:
        self.context.record(InvocationLogger.log_invoke, name, len(args), "failure")
        self.context.record(InvocationLogger.log_error, name, code.value, message)
        return envelope or Failure(message)


__all__ = [
    "HandlerContext",
    "Handler",
    "Operation",
    "operation",
    "registered_operations",
    "check_arity",
    "Dispatcher",
]
