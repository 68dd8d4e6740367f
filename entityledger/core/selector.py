"""Mango-style selector matching for rich queries.

A query expression is a JSON object in the CouchDB shape:

    {"selector": {"docType": "User", "firstName": {"$regex": "^A"}}, "limit": 10}

Only ``selector`` and ``limit`` are honored; other keys are ignored.
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

from entityledger.core.errors import SelectorError

_MISSING = object()


def parse_query(expression: str) -> Tuple[Dict[str, Any], Optional[int]]:
    """Parse a query expression into (selector, limit).

    Raises:
        SelectorError: If the expression isn't a JSON object with a selector
    """
    try:
        query = json.loads(expression)
    except json.JSONDecodeError as e:
        raise SelectorError(f"Query is not valid JSON: {e}") from e

    if not isinstance(query, dict):
        raise SelectorError("Query must be a JSON object")

    selector = query.get("selector", {})
    if not isinstance(selector, dict):
        raise SelectorError("'selector' must be a JSON object")

    limit = query.get("limit")
    if limit is not None and (not isinstance(limit, int) or isinstance(limit, bool) or limit < 0):
        raise SelectorError(f"'limit' must be a non-negative integer, got {limit!r}")

    return selector, limit


def _lookup(doc: Any, path: str) -> Any:
    current = doc
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return _MISSING
    return current


def _compare(value: Any, other: Any, op) -> bool:
    if value is _MISSING:
        return False
    try:
        return op(value, other)
    except TypeError:
        return False


def _match_operator(op: str, value: Any, arg: Any) -> bool:
    if op == "$eq":
        return value is not _MISSING and value == arg
    if op == "$ne":
        return value is _MISSING or value != arg
    if op == "$gt":
        return _compare(value, arg, lambda a, b: a > b)
    if op == "$gte":
        return _compare(value, arg, lambda a, b: a >= b)
    if op == "$lt":
        return _compare(value, arg, lambda a, b: a < b)
    if op == "$lte":
        return _compare(value, arg, lambda a, b: a <= b)
    if op == "$in":
        if not isinstance(arg, list):
            raise SelectorError("$in requires a list")
        return value is not _MISSING and value in arg
    if op == "$nin":
        if not isinstance(arg, list):
            raise SelectorError("$nin requires a list")
        return value is _MISSING or value not in arg
    if op == "$exists":
        return (value is not _MISSING) == bool(arg)
    if op == "$regex":
        if not isinstance(arg, str):
            raise SelectorError("$regex requires a string pattern")
        try:
            pattern = re.compile(arg)
        except re.error as e:
            raise SelectorError(f"Invalid $regex pattern {arg!r}: {e}") from e
        return isinstance(value, str) and pattern.search(value) is not None
    if op == "$not":
        return not _match_condition(value, arg)

    raise SelectorError(f"Unsupported selector operator: {op}")


def _match_condition(value: Any, condition: Any) -> bool:
    """Match a field value against a literal or an operator object."""
    if isinstance(condition, dict) and condition and all(k.startswith("$") for k in condition):
        return all(_match_operator(op, value, arg) for op, arg in condition.items())
    return value is not _MISSING and value == condition


def matches(doc: Any, selector: Dict[str, Any]) -> bool:
    """Return True if ``doc`` satisfies ``selector``.

    Raises:
        SelectorError: On unsupported operators or malformed arguments
    """
    for field, condition in selector.items():
        if field == "$and":
            if not isinstance(condition, list):
                raise SelectorError("$and requires a list")
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif field == "$or":
            if not isinstance(condition, list):
                raise SelectorError("$or requires a list")
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif field == "$nor":
            if not isinstance(condition, list):
                raise SelectorError("$nor requires a list")
            if any(matches(doc, sub) for sub in condition):
                return False
        elif field == "$not":
            if not isinstance(condition, dict):
                raise SelectorError("$not requires a selector object")
            if matches(doc, condition):
                return False
        elif field.startswith("$"):
            raise SelectorError(f"Unsupported selector operator: {field}")
        elif not _match_condition(_lookup(doc, field), condition):
            return False

    return True


def matches_bytes(value: bytes, selector: Dict[str, Any]) -> bool:
    """Match stored bytes; values that aren't JSON never match."""
    try:
        doc = json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return False
    return matches(doc, selector)


__all__ = ["parse_query", "matches", "matches_bytes"]
