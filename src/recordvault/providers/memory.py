"""In-memory store provider."""

import threading
from collections import defaultdict
from typing import Optional

from .base import StoreProvider, ProviderHealth, ProviderStatus
from ..config.providers import StoreConfig
from ..errors import ConflictError
from ..interfaces import PutResult, Record


class InMemoryStoreProvider(StoreProvider[StoreConfig]):
    """In-memory sharded store for testing and development.

    Each shard has its own dict and its own lock, so writes to different
    shards never contend.
    """

    def __init__(self, config: Optional[StoreConfig] = None):
        super().__init__(config or StoreConfig())
        self._shards: dict[int, dict[str, Record]] = defaultdict(dict)
        self._locks: dict[int, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    async def initialize(self) -> None:
        self._initialized = True

    async def shutdown(self) -> None:
        self._shards.clear()
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(
            status=ProviderStatus.HEALTHY,
            latency_ms=0.1,
            message=f"In-memory store with {len(self._shards)} shards",
        )

    def _lock_for(self, shard_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks[shard_id]

    async def put(self, shard_id: int, record: Record) -> PutResult:
        with self._lock_for(shard_id):
            shard = self._shards[shard_id]
            existing = shard.get(record.id)
            if existing is not None:
                if existing.same_content(record):
                    return PutResult(created=False)
                raise ConflictError(record.id)
            shard[record.id] = record
            return PutResult(created=True)

    async def get(self, shard_id: int, record_id: str) -> Optional[Record]:
        with self._lock_for(shard_id):
            shard = self._shards.get(shard_id)
            return shard.get(record_id) if shard else None

    async def count(self) -> int:
        return sum(len(shard) for shard in list(self._shards.values()))

    def shard_sizes(self) -> dict[int, int]:
        """Records per shard (for tests and stats)."""
        return {shard_id: len(shard) for shard_id, shard in self._shards.items()}
