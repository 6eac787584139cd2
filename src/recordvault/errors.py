"""Error taxonomy for recordvault.

Every error carries a ``kind`` and a ``detail`` so the layer in front of the
core can choose a status code without inspecting messages:

- ValidationError: client-caused, never retried, carries field paths.
- ConflictError: id reused with a different payload, never retried.
- UnavailableError: transient backend failure, retried internally first.
- DeadlineExceededError: the latency budget ran out while retrying.

A record that does not exist is not an error; reads return ``None``.
"""

from dataclasses import dataclass
from typing import Any, Optional


class RecordVaultError(Exception):
    """Base class for all recordvault errors."""

    kind: str = "internal"
    retryable: bool = False

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "detail": self.detail}


@dataclass(frozen=True)
class FieldError:
    """A single failing field.

    ``path`` uses dots for object members and ``[i]`` for array items;
    ``$`` designates the payload as a whole.
    """
    path: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"path": self.path, "message": self.message}


class ValidationError(RecordVaultError):
    """Payload does not conform to its schema."""

    kind = "validation"

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        summary = "; ".join(f"{e.path}: {e.message}" for e in self.errors)
        super().__init__(summary or "invalid payload")

    @property
    def paths(self) -> list[str]:
        return [e.path for e in self.errors]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [e.to_dict() for e in self.errors]
        return data


class ConflictError(RecordVaultError):
    """A record with the same id but different content already exists."""

    kind = "conflict"

    def __init__(self, record_id: str, detail: Optional[str] = None):
        self.record_id = record_id
        super().__init__(detail or f"Record {record_id} already exists with different content")


class UnavailableError(RecordVaultError):
    """The backend could not serve the request right now."""

    kind = "unavailable"
    retryable = True


class DeadlineExceededError(UnavailableError):
    """The latency budget was exhausted before the operation completed."""

    kind = "deadline_exceeded"


class ConfigurationError(RecordVaultError):
    """Configuration or schema definitions are invalid."""

    kind = "configuration"
