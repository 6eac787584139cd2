"""Mock implementations for testing."""

import asyncio
import random
from typing import Optional

from ..errors import UnavailableError
from ..interfaces import PutResult, Record
from ..providers.base import ProviderHealth, ProviderStatus, StoreProvider
from ..providers.idempotency import InMemoryIdempotencyProvider
from ..providers.memory import InMemoryStoreProvider


class FaultInjectingStoreProvider(StoreProvider):
    """Store wrapper that simulates latency and transient failures.

    Wraps a real provider (in-memory by default) and counts calls so tests
    can assert how often the backend was touched.
    """

    def __init__(
        self,
        inner: Optional[StoreProvider] = None,
        latency_ms: float = 0,
        failure_rate: float = 0,
        fail_first_n: int = 0,
        unavailable: bool = False,
    ):
        """Initialize the wrapper.

        Args:
            inner: Provider doing the real work.
            latency_ms: Simulated latency per call.
            failure_rate: Probability of an UnavailableError (0.0-1.0).
            fail_first_n: The first N calls fail with UnavailableError.
            unavailable: Every call fails (backend down).
        """
        self.inner = inner or InMemoryStoreProvider()
        super().__init__(self.inner.config)
        self.latency_ms = latency_ms
        self.failure_rate = failure_rate
        self.fail_first_n = fail_first_n
        self.unavailable = unavailable
        self.put_calls = 0
        self.get_calls = 0
        self._call_count = 0

    async def initialize(self) -> None:
        await self.inner.initialize()
        self._initialized = True

    async def shutdown(self) -> None:
        await self.inner.shutdown()
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        if self.unavailable:
            return ProviderHealth(status=ProviderStatus.UNAVAILABLE, message="Simulated outage")
        return await self.inner.health_check()

    async def _maybe_fail(self) -> None:
        self._call_count += 1

        # Simulate latency
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000)

        # Simulate failures
        if self.unavailable or self._call_count <= self.fail_first_n:
            raise UnavailableError("Mock store unavailable")
        if self.failure_rate > 0 and random.random() < self.failure_rate:
            raise UnavailableError("Mock store failure")

    async def put(self, shard_id: int, record: Record) -> PutResult:
        self.put_calls += 1
        await self._maybe_fail()
        return await self.inner.put(shard_id, record)

    async def get(self, shard_id: int, record_id: str) -> Optional[Record]:
        self.get_calls += 1
        await self._maybe_fail()
        return await self.inner.get(shard_id, record_id)

    async def count(self) -> int:
        return await self.inner.count()


class FlakyCommitIdempotencyProvider(InMemoryIdempotencyProvider):
    """Idempotency tracker whose commits fail, to simulate a lost commit."""

    def __init__(self, *args, fail_commits: int = 1_000_000, **kwargs):
        super().__init__(*args, **kwargs)
        self.fail_commits = fail_commits
        self.commit_calls = 0

    async def commit(self, key: str, result_id: str) -> None:
        self.commit_calls += 1
        if self.commit_calls <= self.fail_commits:
            raise UnavailableError("Mock tracker commit failure")
        await super().commit(key, result_id)
