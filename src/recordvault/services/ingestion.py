"""Write path: validate, dedupe, route, persist, acknowledge.

Each write walks the states

    received -> validated -> deduped -> routed -> persisted -> acknowledged

and leaves through ``rejected`` (client error: validation, conflict) or
``failed`` (backend unavailable, deadline exceeded) from any state.

Guarantees:
- Validation failures never reach the tracker or the store.
- A retried write with the same idempotency key within the dedup window
  never produces a second record: the tracker collapses it, and when the
  key's commit was lost the record id (derived from the key and its
  window epoch) lets the retry find the first write. After the window a
  reused key writes a new record.
- During a mapping migration an id already stored under another read
  version is treated like one stored in the write shard.
- A failed write releases its idempotency reservation.
- Persistence runs in a shielded task, so a caller that gives up or runs
  out of budget does not abort a write mid-flight; it completes in the
  background.
"""

import asyncio
import logging
import uuid
from enum import Enum
from typing import Callable, Optional

from ..errors import ConflictError, DeadlineExceededError, RecordVaultError, ValidationError
from ..interfaces import Record, WriteAck, WriteRequest, WriteStatus, utcnow
from ..providers.base import CacheProvider, IdempotencyProvider, StoreProvider
from ..retry import Deadline, RetryPolicy, call_with_retry
from ..routing import PartitionRouter
from ..validation import Validator

logger = logging.getLogger(__name__)

# Namespace of ids derived from idempotency keys (uuid5)
IDEMPOTENT_ID_NAMESPACE = uuid.UUID("5b0b6a52-8f0e-4f43-9d8e-6c3c2a9f1e27")


class WriteState(Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    DEDUPED = "deduped"
    ROUTED = "routed"
    PERSISTED = "persisted"
    ACKNOWLEDGED = "acknowledged"
    REJECTED = "rejected"
    FAILED = "failed"

    @classmethod
    def for_error(cls, error: BaseException) -> "WriteState":
        """Terminal state a write ends in when ``error`` is raised."""
        if isinstance(error, (ValidationError, ConflictError)):
            return cls.REJECTED
        return cls.FAILED


def id_for_key(idempotency_key: str, epoch: Optional[str] = None) -> str:
    """Record id derived from an idempotency key and its window epoch."""
    name = idempotency_key if epoch is None else f"{idempotency_key}\x00{epoch}"
    return str(uuid.uuid5(IDEMPOTENT_ID_NAMESPACE, name))


class IngestionService:
    """Orchestrates validator, tracker, router and store for writes.

    Args:
        validator: Payload validator
        router: Partition router (writes use its current version)
        store: Store provider
        tracker: Idempotency tracker; without it keys are ignored
        cache: Optional read cache (only used with ``populate_cache``)
        retry_policy: Backoff for transient store failures
        latency_budget_ms: Default budget when no deadline is passed
        populate_cache: Insert newly created records into the cache
        id_factory: Generates ids for writes without id or key
    """

    def __init__(
        self,
        validator: Validator,
        router: PartitionRouter,
        store: StoreProvider,
        tracker: Optional[IdempotencyProvider] = None,
        cache: Optional[CacheProvider] = None,
        retry_policy: Optional[RetryPolicy] = None,
        latency_budget_ms: float = 500.0,
        populate_cache: bool = False,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        self.validator = validator
        self.router = router
        self.store = store
        self.tracker = tracker
        self.cache = cache
        self.retry_policy = retry_policy or RetryPolicy()
        self.latency_budget_ms = latency_budget_ms
        self.populate_cache = populate_cache
        self._id_factory = id_factory or (lambda: str(uuid.uuid4()))
        self._background: set[asyncio.Task] = set()

    @property
    def pending_writes(self) -> int:
        """Writes still persisting in the background."""
        return len(self._background)

    async def write(self, request: WriteRequest, deadline: Optional[Deadline] = None) -> WriteAck:
        """Run one write through the state machine.

        Raises:
            ValidationError: payload rejected (state ``rejected``)
            ConflictError: id reused with a different payload (``rejected``)
            UnavailableError: store still failing after retries (``failed``)
            DeadlineExceededError: latency budget exhausted (``failed``)
        """
        deadline = deadline or Deadline.from_ms(self.latency_budget_ms)
        ref = request.record_id or request.idempotency_key or "-"
        state = WriteState.RECEIVED

        try:
            validated = self.validator.validate(request.payload, request.schema_version)
            state = self._advance(ref, state, WriteState.VALIDATED)

            key = request.idempotency_key
            epoch = None
            if key is not None and self.tracker is not None:
                reservation = await self.tracker.check_and_reserve(key, timeout=deadline.remaining())
                if reservation.is_duplicate:
                    state = self._advance(ref, state, WriteState.ACKNOWLEDGED)
                    return WriteAck(id=reservation.result_id, status=WriteStatus.DUPLICATE)
                epoch = reservation.epoch
            else:
                key = None
            state = self._advance(ref, state, WriteState.DEDUPED)

            try:
                derived = request.record_id is None and key is not None
                if request.record_id is not None:
                    record_id = request.record_id
                elif key is not None:
                    record_id = id_for_key(key, epoch)
                else:
                    record_id = self._id_factory()

                record = Record(
                    id=record_id,
                    payload=validated.payload,
                    created_at=utcnow(),
                    schema_version=validated.schema_version,
                )
                assignment = self.router.route(record_id)
                state = self._advance(record_id, state, WriteState.ROUTED)

                task = asyncio.create_task(
                    self._persist(record, assignment.shard_id, key, derived, deadline)
                )
            except BaseException:
                if key is not None:
                    await self.tracker.release(key)
                raise

            self._background.add(task)
            task.add_done_callback(self._forget_task)
            try:
                return await asyncio.wait_for(asyncio.shield(task), timeout=deadline.remaining())
            except asyncio.TimeoutError:
                raise DeadlineExceededError(
                    f"write {record_id}: latency budget exhausted, persisting in the background"
                ) from None

        except RecordVaultError as e:
            logger.info(f"write {ref}: {state.value} -> {WriteState.for_error(e).value} ({e.kind}: {e.detail})")
            raise

    async def _persist(
        self,
        record: Record,
        shard_id: int,
        key: Optional[str],
        derived: bool,
        deadline: Deadline,
    ) -> WriteAck:
        try:
            try:
                existing = await self._find_in_other_versions(record, shard_id, deadline)
                if existing is None:
                    result = await call_with_retry(
                        lambda: self.store.put(shard_id, record),
                        self.retry_policy,
                        deadline,
                        describe=f"put {record.id}",
                        bound_attempts=False,
                    )
                    status = WriteStatus.CREATED if result.created else WriteStatus.DUPLICATE
                elif existing.same_content(record):
                    status = WriteStatus.DUPLICATE
                else:
                    raise ConflictError(record.id)
            except ConflictError:
                if not derived:
                    raise
                # An earlier attempt with this key landed but its commit was lost
                logger.info(f"Record {record.id} already written for idempotency key {key!r}")
                status = WriteStatus.DUPLICATE
        except BaseException:
            if key is not None:
                await self.tracker.release(key)
            raise

        self._advance(record.id, WriteState.ROUTED, WriteState.PERSISTED)

        if key is not None:
            await self._commit(key, record.id)

        if self.populate_cache and self.cache is not None and status == WriteStatus.CREATED:
            await self.cache.put(record.id, record)

        self._advance(record.id, WriteState.PERSISTED, WriteState.ACKNOWLEDGED)
        return WriteAck(id=record.id, status=status)

    async def _find_in_other_versions(
        self,
        record: Record,
        shard_id: int,
        deadline: Deadline,
    ) -> Optional[Record]:
        """Look the id up on shards of read versions other than the write shard.

        Only does work while a migration keeps more than one mapping readable.
        """
        for assignment in self.router.read_assignments(record.id):
            if assignment.shard_id == shard_id:
                continue
            existing = await call_with_retry(
                lambda other=assignment.shard_id: self.store.get(other, record.id),
                self.retry_policy,
                deadline,
                describe=f"get {record.id} from shard {assignment.shard_id}",
            )
            if existing is not None:
                logger.debug(
                    f"Record {record.id} already stored under mapping v{assignment.mapping_version}"
                )
                return existing
        return None

    async def _commit(self, key: str, record_id: str) -> None:
        async def attempt() -> None:
            await self.tracker.commit(key, record_id)

        try:
            await call_with_retry(attempt, self.retry_policy, describe=f"commit {key!r}")
        except RecordVaultError as e:
            logger.warning(
                f"Could not commit idempotency key {key!r} for record {record_id}: {e.detail}"
            )
            # Unblock retries; they find the record through the key-derived id
            try:
                await self.tracker.release(key)
            except RecordVaultError as release_error:
                logger.warning(f"Could not release idempotency key {key!r}: {release_error.detail}")

    def _advance(self, ref: str, current: WriteState, target: WriteState) -> WriteState:
        logger.debug(f"write {ref}: {current.value} -> {target.value}")
        return target

    def _forget_task(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Background write finished with {task.exception()!r}")

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for background writes to finish (called at shutdown)."""
        if not self._background:
            return
        logger.info(f"Waiting for {len(self._background)} in-flight write(s)")
        pending = list(self._background)
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"{len(not_done)} write(s) still in flight after drain timeout")
