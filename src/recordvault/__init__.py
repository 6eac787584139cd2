"""recordvault: data ingestion and retrieval core.

Validates records against versioned schemas, deduplicates retried writes
by idempotency key, routes ids to shards of a partitioned store and serves
reads through an optional LRU cache.

Usage:
    from recordvault import RecordSystem, SystemConfig

    async with RecordSystem(SystemConfig.from_env()) as system:
        ack = await system.write({"name": "a"}, schema_version=1, idempotency_key="k1")
        record = await system.read(ack.id)
"""

from .config import SystemConfig
from .container import Container
from .errors import (
    RecordVaultError,
    FieldError,
    ValidationError,
    ConflictError,
    UnavailableError,
    DeadlineExceededError,
    ConfigurationError,
)
from .interfaces import Record, WriteRequest, WriteAck, WriteStatus
from .system import RecordSystem
from .validation import RecordSchema, SchemaRegistry, Validator

__version__ = "0.1.0"

__all__ = [
    "RecordSystem",
    "SystemConfig",
    "Container",
    "Record",
    "WriteRequest",
    "WriteAck",
    "WriteStatus",
    "RecordSchema",
    "SchemaRegistry",
    "Validator",
    "RecordVaultError",
    "FieldError",
    "ValidationError",
    "ConflictError",
    "UnavailableError",
    "DeadlineExceededError",
    "ConfigurationError",
]
