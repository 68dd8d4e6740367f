"""
Record kinds and the record codec.

Every record carries a ``docType`` discriminant and an ``id`` that doubles as
its ledger key. Concrete kinds are pydantic models registered by discriminant,
so the set of kinds is an open tagged variant:

    @register_kind("User")
    class User(Record):
        doc_type: Literal["User"] = Field(default="User", alias="docType")
        ...

The caller always names the kind. ``decode`` picks the model before touching
the payload, so an unknown kind fails without any parsing.

Canonical encoding is compact JSON in declared field order, holding the
discriminant plus exactly the fields the caller supplied.
"""

import json
from typing import Any, Dict, List, Literal, Mapping, Set, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from entityledger.core.errors import DecodeError, UnknownKindError


class Record(BaseModel):
    """Common shape shared by all record kinds."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    doc_type: str = Field(alias="docType")
    id: str = Field(min_length=1, description="Unique identifier, also the ledger key")

    @property
    def key(self) -> str:
        """Ledger key for this record (flat namespace shared by all kinds)."""
        return self.id

    def _wire_fields(self) -> Set[str]:
        # Discriminant is always on the wire, even when it came from the default
        return self.model_fields_set | {"doc_type"}

    def to_fields(self) -> Dict[str, Any]:
        """Return the wire mapping (aliased names, discriminant plus supplied fields)."""
        return self.model_dump(by_alias=True, include=self._wire_fields())

    def to_bytes(self) -> bytes:
        """Return the canonical byte encoding."""
        return self.model_dump_json(by_alias=True, include=self._wire_fields()).encode("utf-8")


# Kind registry for loading by discriminant
_KIND_REGISTRY: Dict[str, Type[Record]] = {}


def register_kind(name: str):
    """Decorator to register a record kind under its discriminant."""
    def decorator(cls):
        _KIND_REGISTRY[name] = cls
        return cls
    return decorator


def get_kind(name: str) -> Type[Record]:
    """Get a record model by discriminant.

    Raises:
        UnknownKindError: If no model is registered under ``name``
    """
    if name not in _KIND_REGISTRY:
        raise UnknownKindError(name, list_kinds())
    return _KIND_REGISTRY[name]


def list_kinds() -> List[str]:
    """List registered record kinds."""
    return list(_KIND_REGISTRY.keys())


@register_kind("User")
class User(Record):
    """A person registered with the program."""

    doc_type: Literal["User"] = Field(default="User", alias="docType")
    first_name: str = Field(default="", alias="firstName")
    last_name: str = Field(default="", alias="lastName")
    email: str = ""
    phone_number: str = Field(default="", alias="phoneNumber")
    user_type: str = Field(default="", alias="userType")
    date_of_registration: str = Field(default="", alias="dateOfRegistration")


@register_kind("Activity")
class Activity(Record):
    """Something that happened on a given date."""

    doc_type: Literal["Activity"] = Field(default="Activity", alias="docType")
    date_of_activity: str = Field(default="", alias="dateOfActivity")


def _format_validation_error(kind: str, exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "<root>"
        problems.append(f"{loc}: {err.get('msg', 'invalid')}")
    return f"Payload does not match kind {kind!r}: " + "; ".join(problems)


def build(kind: str, fields: Union[Mapping[str, Any], Record]) -> Record:
    """Validate ``fields`` as a record of ``kind``.

    The discriminant is filled in when the caller leaves it out.

    Args:
        kind: Record kind (discriminant)
        fields: Wire mapping, or an already-built record

    Returns:
        Validated record

    Raises:
        UnknownKindError: If ``kind`` is not registered
        DecodeError: If ``fields`` doesn't fit the kind's shape
    """
    model = get_kind(kind)

    if isinstance(fields, Record):
        if not isinstance(fields, model):
            raise DecodeError(
                f"Record of kind {fields.doc_type!r} cannot be encoded as {kind!r}"
            )
        return fields

    if not isinstance(fields, Mapping):
        raise DecodeError(
            f"Payload for kind {kind!r} must be a JSON object, got {type(fields).__name__}"
        )

    data = dict(fields)
    data.setdefault("docType", kind)

    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise DecodeError(_format_validation_error(kind, e)) from e


def encode(kind: str, fields: Union[Mapping[str, Any], Record]) -> bytes:
    """Encode a record of ``kind`` to its canonical bytes."""
    return build(kind, fields).to_bytes()


def decode(kind: str, data: Union[bytes, str]) -> Record:
    """Decode canonical bytes back into a record of ``kind``.

    Raises:
        UnknownKindError: If ``kind`` is not registered (checked before parsing)
        DecodeError: If ``data`` is not valid JSON for the kind's shape
    """
    model = get_kind(kind)

    try:
        return model.model_validate_json(data)
    except ValidationError as e:
        raise DecodeError(_format_validation_error(kind, e)) from e


def parse_payload(kind: str, payload: Union[bytes, str]) -> Record:
    """Parse a caller-supplied JSON payload into a record of ``kind``.

    Unlike ``decode``, the payload may omit the discriminant.
    """
    # Unknown kind fails before parsing
    get_kind(kind)

    try:
        fields = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Payload for kind {kind!r} is not valid JSON: {e}") from e

    return build(kind, fields)


__all__ = [
    "Record",
    "User",
    "Activity",
    "register_kind",
    "get_kind",
    "list_kinds",
    "build",
    "encode",
    "decode",
    "parse_payload",
]
