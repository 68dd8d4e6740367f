"""Response envelope returned by every operation.

Exactly two variants: Success carries a (possibly empty) byte payload,
Failure carries a non-empty human-readable message.
"""

from dataclasses import dataclass
from typing import Any, Dict, Union


@dataclass(frozen=True)
class Success:
    """Operation succeeded. An empty payload means "acknowledged, no data"."""

    payload: bytes = b""

    @property
    def ok(self) -> bool:
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "payload": self.payload.decode("utf-8", errors="replace")}


@dataclass(frozen=True)
class Failure:
    """Operation failed with a message for the caller."""

    message: str

    def __post_init__(self):
        if not self.message:
            raise ValueError("Failure message must not be empty")

    @property
    def ok(self) -> bool:
        return False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message}


Envelope = Union[Success, Failure]

__all__ = ["Success", "Failure", "Envelope"]
