"""Entity operations exposed through the dispatcher.

- SaveEntity(kind, jsonPayload): validate and store a record under its id
- GetEntity(key): current bytes for a key (empty payload when absent)
- GetEntityByQuery(expression): JSON array of matching {Key, Record} pairs
- GetHistoryForEntity(key): JSON array of every mutation of a key
"""

from typing import Sequence

from entityledger.core.observability import InvocationLogger
from entityledger.core.records import parse_payload
from entityledger.core.serializer import history_to_json, query_results_to_json
from entityledger.dispatch.dispatcher import HandlerContext, operation
from entityledger.dispatch.envelope import Envelope, Success


@operation("SaveEntity", arity=2)
def save_entity(ctx: HandlerContext, args: Sequence[str]) -> Envelope:
    ctx.check_arity(args)
    kind, payload = args

    record = parse_payload(kind, payload)
    data = record.to_bytes()
    ctx.ledger.put(record.key, data)

    ctx.record(InvocationLogger.log_write, record.key, kind, len(data))
    return Success(b"")


@operation("GetEntity", arity=1)
def get_entity(ctx: HandlerContext, args: Sequence[str]) -> Envelope:
    ctx.check_arity(args)
    key = args[0]

    data = ctx.ledger.get(key)

    ctx.record(InvocationLogger.log_read, key, found=bool(data))
    return Success(data)


@operation("GetEntityByQuery", arity=1)
def get_entity_by_query(ctx: HandlerContext, args: Sequence[str]) -> Envelope:
    ctx.check_arity(args)
    expression = args[0]

    payload = query_results_to_json(ctx.ledger.query(expression))

    ctx.record(InvocationLogger.log_query, expression, len(payload))
    return Success(payload)


@operation("GetHistoryForEntity", arity=1)
def get_history_for_entity(ctx: HandlerContext, args: Sequence[str]) -> Envelope:
    ctx.check_arity(args)
    key = args[0]

    payload = history_to_json(ctx.ledger.history(key))

    ctx.record(InvocationLogger.log_history, key, len(payload))
    return Success(payload)
