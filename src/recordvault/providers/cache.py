"""Segmented LRU read cache."""

import itertools
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .base import CacheProvider, ProviderHealth, ProviderStatus
from ..config.providers import CacheConfig
from ..interfaces import CacheEntry, Record


@dataclass
class _Segment:
    lock: threading.Lock = field(default_factory=threading.Lock)
    entries: "OrderedDict[str, CacheEntry]" = field(default_factory=OrderedDict)
    # record id -> tick of its last use
    ticks: dict[str, int] = field(default_factory=dict)
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0

    def drop(self, record_id: str) -> None:
        del self.entries[record_id]
        del self.ticks[record_id]


class LRUCacheProvider(CacheProvider[CacheConfig]):
    """Bounded, TTL-limited LRU cache split into independently locked segments.

    Ids hash to a segment; each segment is an ``OrderedDict`` kept in
    least-recently-used order with its own lock, so lookups of unrelated ids
    do not contend. Capacity is enforced over the whole cache: when it is
    exceeded, the least-recently-used entry across all segments (the oldest
    of the segment heads, ties broken by insertion order) is evicted.
    Counters live in the segments and are summed by ``stats``.
    """

    def __init__(
        self,
        config: Optional[CacheConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(config or CacheConfig())
        self._clock = clock
        self._capacity = max(1, self.config.capacity)
        count = max(1, min(self.config.segments, self._capacity))
        self._segments = [_Segment() for _ in range(count)]
        self._ticks = itertools.count()
        self._evict_lock = threading.Lock()

    async def initialize(self) -> None:
        self._initialized = True

    async def shutdown(self) -> None:
        await self.clear()
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(
            status=ProviderStatus.HEALTHY,
            latency_ms=0.1,
            message=f"LRU cache with {len(self)} entries",
        )

    def __len__(self) -> int:
        return sum(len(s.entries) for s in self._segments)

    def _segment(self, record_id: str) -> _Segment:
        return self._segments[hash(record_id) % len(self._segments)]

    async def get(self, record_id: str) -> Optional[Record]:
        segment = self._segment(record_id)
        with segment.lock:
            entry = segment.entries.get(record_id)
            if entry is None:
                segment.misses += 1
                return None
            if self._clock() - entry.inserted_at >= self.config.ttl_seconds:
                segment.drop(record_id)
                segment.expirations += 1
                segment.misses += 1
                return None
            segment.entries.move_to_end(record_id)
            segment.ticks[record_id] = next(self._ticks)
            segment.hits += 1
            return entry.record

    async def put(self, record_id: str, record: Record) -> None:
        segment = self._segment(record_id)
        with segment.lock:
            segment.entries[record_id] = CacheEntry(
                id=record_id, record=record, inserted_at=self._clock()
            )
            segment.entries.move_to_end(record_id)
            segment.ticks[record_id] = next(self._ticks)
        if len(self) > self._capacity:
            self._evict()

    def _evict(self) -> None:
        with self._evict_lock:
            while len(self) > self._capacity:
                victim = None
                for segment in self._segments:
                    with segment.lock:
                        if not segment.entries:
                            continue
                        head = next(iter(segment.entries))
                        tick = segment.ticks[head]
                    if victim is None or tick < victim[0]:
                        victim = (tick, segment, head)
                if victim is None:
                    return
                tick, segment, head = victim
                with segment.lock:
                    # skip if the head was used again since it was looked at
                    if segment.ticks.get(head) == tick:
                        segment.drop(head)
                        segment.evictions += 1

    async def invalidate(self, record_id: str) -> None:
        segment = self._segment(record_id)
        with segment.lock:
            if record_id in segment.entries:
                segment.drop(record_id)

    async def clear(self) -> None:
        for segment in self._segments:
            with segment.lock:
                segment.entries.clear()
                segment.ticks.clear()

    def stats(self) -> dict[str, Any]:
        totals = {"hits": 0, "misses": 0, "evictions": 0, "expirations": 0}
        for segment in self._segments:
            with segment.lock:
                for name in totals:
                    totals[name] += getattr(segment, name)
        return {
            "size": len(self),
            "capacity": self._capacity,
            "segments": len(self._segments),
            **totals,
        }
