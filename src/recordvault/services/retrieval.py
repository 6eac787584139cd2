"""Read path: cache, route, fetch, fill."""

import logging
from typing import Optional

from ..interfaces import Record
from ..providers.base import CacheProvider, StoreProvider
from ..retry import Deadline, RetryPolicy, call_with_retry
from ..routing import PartitionRouter

logger = logging.getLogger(__name__)


class RetrievalService:
    """Serves records by id through an optional read-through cache.

    Missing records are never cached, so a write that lands right after a
    failed read is visible on the next read. Transient store failures are
    retried within the latency budget and then raised; they never turn into
    a false "not found".
    """

    def __init__(
        self,
        router: PartitionRouter,
        store: StoreProvider,
        cache: Optional[CacheProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        latency_budget_ms: float = 500.0,
    ):
        self.router = router
        self.store = store
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.latency_budget_ms = latency_budget_ms

    async def retrieve(self, record_id: str, deadline: Optional[Deadline] = None) -> Optional[Record]:
        """Return the record, or ``None`` when it does not exist.

        During a shard migration every read mapping version is consulted in
        order until one has the record.

        Raises:
            UnavailableError: store kept failing for the allowed attempts
            DeadlineExceededError: latency budget exhausted while retrying
        """
        if self.cache is not None:
            cached = await self.cache.get(record_id)
            if cached is not None:
                return cached

        deadline = deadline or Deadline.from_ms(self.latency_budget_ms)
        for assignment in self.router.read_assignments(record_id):
            record = await call_with_retry(
                lambda shard_id=assignment.shard_id: self.store.get(shard_id, record_id),
                self.retry_policy,
                deadline,
                describe=f"get {record_id}",
            )
            if record is not None:
                if self.cache is not None:
                    await self.cache.put(record_id, record)
                return record

        logger.debug(f"Record {record_id} not found")
        return None

    async def exists(self, record_id: str, deadline: Optional[Deadline] = None) -> bool:
        """Existence check that skips the payload round-trip where the store allows."""
        if self.cache is not None and await self.cache.get(record_id) is not None:
            return True

        deadline = deadline or Deadline.from_ms(self.latency_budget_ms)
        for assignment in self.router.read_assignments(record_id):
            found = await call_with_retry(
                lambda shard_id=assignment.shard_id: self.store.exists(shard_id, record_id),
                self.retry_policy,
                deadline,
                describe=f"exists {record_id}",
            )
            if found:
                return True
        return False
