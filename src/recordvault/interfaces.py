"""Core data model for recordvault.

These types are shared by every layer: the validator, the idempotency
tracker, the partition router, the store providers and the services that
orchestrate them.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


@dataclass
class Record:
    """A stored record.

    Attributes:
        id: Unique identifier, immutable once assigned
        payload: JSON-compatible structure validated against ``schema_version``
        created_at: When the record was created (UTC)
        schema_version: Version of the schema the payload was validated against
    """
    id: str
    payload: dict[str, Any]
    created_at: datetime = field(default_factory=utcnow)
    schema_version: int = 1

    def same_content(self, other: "Record") -> bool:
        """True when both records carry the same logical write.

        ``created_at`` is ignored: two attempts of the same write are
        stamped at different times.
        """
        return (
            self.id == other.id
            and self.schema_version == other.schema_version
            and self.payload == other.payload
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "payload": self.payload,
            "created_at": self.created_at.isoformat(),
            "schema_version": self.schema_version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Record":
        created_at = data.get("created_at")
        return cls(
            id=data["id"],
            payload=data["payload"],
            created_at=datetime.fromisoformat(created_at) if created_at else utcnow(),
            schema_version=int(data.get("schema_version", 1)),
        )

    def __repr__(self) -> str:
        return f"Record(id={self.id}, schema_version={self.schema_version})"


@dataclass
class WriteRequest:
    """A parsed, authenticated write handed over by the gateway.

    Attributes:
        payload: Record body
        schema_version: Schema to validate the payload against
        idempotency_key: Optional token collapsing retried writes
        record_id: Optional caller-assigned id (server assigns one otherwise)
    """
    payload: Any
    schema_version: int
    idempotency_key: Optional[str] = None
    record_id: Optional[str] = None


class WriteStatus(Enum):
    """Outcome of an acknowledged write."""
    CREATED = "created"
    DUPLICATE = "duplicate"


@dataclass
class WriteAck:
    """Acknowledgment returned for a successful write."""
    id: str
    status: WriteStatus

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "status": self.status.value}


@dataclass
class IdempotencyEntry:
    """A committed idempotency key and the record it produced."""
    key: str
    result_id: str
    expires_at: datetime


class ReservationStatus(Enum):
    FRESH = "fresh"
    DUPLICATE = "duplicate"


@dataclass
class Reservation:
    """Answer of ``check_and_reserve``.

    ``result_id`` is only set for duplicates. ``epoch`` is set for fresh
    reservations: it stays the same for every reservation of the key
    within one dedup window and changes once the window has passed.
    """
    status: ReservationStatus
    result_id: Optional[str] = None
    epoch: Optional[str] = None

    @property
    def is_duplicate(self) -> bool:
        return self.status == ReservationStatus.DUPLICATE


@dataclass(frozen=True)
class ShardAssignment:
    """Where a record id lives under a given mapping version."""
    shard_id: int
    mapping_version: int


@dataclass
class CacheEntry:
    """A cached record. Owned by the read cache, never the source of truth."""
    id: str
    record: Record
    inserted_at: float


@dataclass
class PutResult:
    """Result of a store ``put``.

    ``created`` is False when an identical record with the same id was
    already stored.
    """
    created: bool
