"""Abstract base classes for all providers.

These define the contracts that provider implementations must satisfy.
The store, the idempotency tracker and the read cache are all providers:
explicitly constructed, initialized at startup and shut down at teardown.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

from ..interfaces import IdempotencyEntry, PutResult, Record, Reservation, utcnow

# Type variable for provider-specific configuration
TConfig = TypeVar('TConfig')


class ProviderStatus(Enum):
    """Provider health status."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"
    INITIALIZING = "initializing"


@dataclass
class ProviderHealth:
    """Health check result for a provider."""
    status: ProviderStatus
    latency_ms: Optional[float] = None
    message: Optional[str] = None
    last_check: datetime = field(default_factory=utcnow)

    @property
    def ok(self) -> bool:
        return self.status in (ProviderStatus.HEALTHY, ProviderStatus.DEGRADED)


class Provider(ABC, Generic[TConfig]):
    """Base class for all providers.

    Provides common functionality:
    - Configuration management
    - Health checking
    - Lifecycle management (init/shutdown)
    """

    def __init__(self, config: TConfig):
        self.config = config
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the provider. Called once before first use."""
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        """Gracefully shutdown the provider."""
        pass

    @abstractmethod
    async def health_check(self) -> ProviderHealth:
        """Check provider health and connectivity."""
        pass

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def __aenter__(self):
        if not self._initialized:
            await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()


class StoreProvider(Provider[TConfig]):
    """Abstract store provider.

    The seam to the persistence backend. Implementations must give
    per-shard linearizable point writes and reads; durability is the
    backend's job. ``put`` is a single-record, single-shard operation.
    """

    @abstractmethod
    async def put(self, shard_id: int, record: Record) -> PutResult:
        """Persist ``record`` on ``shard_id``.

        Returns ``PutResult(created=False)`` when an identical record with
        the same id already exists.

        Raises:
            ConflictError: the id exists with different content
            UnavailableError: transient backend failure
        """
        pass

    @abstractmethod
    async def get(self, shard_id: int, record_id: str) -> Optional[Record]:
        """Fetch a record, ``None`` when it does not exist.

        Raises:
            UnavailableError: transient backend failure
        """
        pass

    async def exists(self, shard_id: int, record_id: str) -> bool:
        """Whether a record exists on ``shard_id``."""
        return await self.get(shard_id, record_id) is not None

    @abstractmethod
    async def count(self) -> int:
        """Total number of stored records."""
        pass


class IdempotencyProvider(Provider[TConfig]):
    """Abstract idempotency tracker.

    Deduplicates retried writes carrying the same idempotency key within a
    bounded window. It is a deduplication window, not an audit log.
    """

    @abstractmethod
    async def check_and_reserve(self, key: str, timeout: Optional[float] = None) -> Reservation:
        """Atomically look up ``key`` and reserve it when absent.

        Returns a duplicate reservation with the original ``result_id``
        when the key is committed. A fresh reservation carries the key's
        epoch, which only changes once the dedup window has passed since
        the key was first reserved. When another write holds the key, waits
        at most ``timeout`` seconds for it to commit or release.

        Raises:
            DeadlineExceededError: the key stayed reserved past ``timeout``
        """
        pass

    @abstractmethod
    async def commit(self, key: str, result_id: str) -> None:
        """Record the final result of a reserved key."""
        pass

    @abstractmethod
    async def release(self, key: str) -> None:
        """Drop an uncommitted reservation so a retry can proceed."""
        pass

    @abstractmethod
    async def get_entry(self, key: str) -> Optional[IdempotencyEntry]:
        """The committed entry of ``key``, if still within the window."""
        pass

    @abstractmethod
    async def sweep(self) -> int:
        """Remove expired entries. Returns how many were removed."""
        pass


class CacheProvider(Provider[TConfig]):
    """Abstract read cache.

    A pure performance optimization in front of the store: never the
    source of truth, never caches a missing record.
    """

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Record]:
        pass

    @abstractmethod
    async def put(self, record_id: str, record: Record) -> None:
        pass

    @abstractmethod
    async def invalidate(self, record_id: str) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Counters (hits, misses, evictions, size...)."""
        pass
