"""Component-specific configuration classes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional


class StoreProviderType(Enum):
    """Available store backends."""
    MEMORY = "memory"
    LANCEDB = "lancedb"
    HTTP = "http"


@dataclass
class StoreConfig:
    """Configuration for the store provider.

    Attributes:
        provider: Which backend to use
        path: Local database path (LanceDB)
        uri: Cloud database URI (LanceDB Cloud)
        api_key: API key for cloud or HTTP backends
        table_prefix: Prefix of per-shard table names
        base_url: Root URL of the HTTP document store
        timeout_seconds: Per-request timeout of the HTTP backend
    """
    provider: StoreProviderType = StoreProviderType.MEMORY
    path: Optional[str] = None
    uri: Optional[str] = None
    api_key: Optional[str] = None
    table_prefix: str = "records"
    base_url: Optional[str] = None
    timeout_seconds: float = 0.25


@dataclass
class MappingConfig:
    """An additional shard mapping version (for migrations)."""
    version: int
    partition_count: int
    strategy: Literal["modulo", "jump"] = "jump"


@dataclass
class RoutingConfig:
    """Configuration for the partition router.

    Attributes:
        partition_count: Shards under the primary mapping
        strategy: Hash strategy of the primary mapping
        version: Version of the primary mapping
        mappings: Extra mapping versions active during a migration
        write_version: Version new writes use (default: ``version``)
        read_versions: Versions consulted on reads, in order
    """
    partition_count: int = 16
    strategy: Literal["modulo", "jump"] = "jump"
    version: int = 1
    mappings: list[MappingConfig] = field(default_factory=list)
    write_version: Optional[int] = None
    read_versions: list[int] = field(default_factory=list)


@dataclass
class IdempotencyConfig:
    """Configuration for the idempotency tracker.

    Attributes:
        window_seconds: How long a committed key is remembered
        reservation_timeout_seconds: How long an uncommitted reservation
            blocks the key before it is considered abandoned
        stripes: Number of independently locked stripes
        sweep_interval_seconds: Period of the expired-entry sweeper
    """
    window_seconds: float = 3600.0
    reservation_timeout_seconds: float = 30.0
    stripes: int = 64
    sweep_interval_seconds: float = 60.0


@dataclass
class CacheConfig:
    """Configuration for the read cache.

    Attributes:
        enabled: Whether reads go through a cache
        capacity: Maximum number of cached records
        ttl_seconds: Maximum age of a cached record
        segments: Number of independently locked LRU segments
        populate_on_write: Insert freshly written records into the cache
    """
    enabled: bool = True
    capacity: int = 10_000
    ttl_seconds: float = 300.0
    segments: int = 16
    populate_on_write: bool = False


@dataclass
class RetryConfig:
    """Backoff parameters for transient backend failures."""
    max_attempts: int = 3
    backoff_base_ms: float = 10.0
    backoff_multiplier: float = 2.0
    backoff_max_ms: float = 100.0


@dataclass
class ValidationConfig:
    """Configuration for payload validation.

    Attributes:
        max_payload_bytes: Size limit of an encoded payload
        collect_all_errors: Report every failing field, not only the first
        schemas_path: YAML/JSON file of schema descriptors
        schemas: Inline schema descriptors
    """
    max_payload_bytes: int = 64 * 1024
    collect_all_errors: bool = False
    schemas_path: Optional[str] = None
    schemas: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class ServerConfig:
    """HTTP adapter configuration."""
    host: str = "127.0.0.1"
    port: int = 18800
