"""In-memory idempotency tracker."""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from .base import IdempotencyProvider, ProviderHealth, ProviderStatus
from ..config.providers import IdempotencyConfig
from ..errors import DeadlineExceededError
from ..interfaces import IdempotencyEntry, Reservation, ReservationStatus

logger = logging.getLogger(__name__)


@dataclass
class _Slot:
    # result_id is None while the key is only reserved
    result_id: Optional[str]
    expires_at: float
    waiter: Optional[asyncio.Future] = None

    @property
    def committed(self) -> bool:
        return self.result_id is not None


@dataclass
class _Stripe:
    lock: threading.Lock = field(default_factory=threading.Lock)
    slots: dict[str, _Slot] = field(default_factory=dict)
    # key -> (epoch, expires_at); outlives released reservations
    epochs: dict[str, tuple[str, float]] = field(default_factory=dict)


def _wake(slot: _Slot, result: Optional[str]) -> None:
    if slot.waiter is not None and not slot.waiter.done():
        slot.waiter.set_result(result)


class InMemoryIdempotencyProvider(IdempotencyProvider[IdempotencyConfig]):
    """Lock-striped, TTL-bounded idempotency map.

    Keys hash to one of ``config.stripes`` stripes, each with its own lock,
    so unrelated keys never serialize on a single lock. A key is either
    reserved (a write is in flight) or committed (``result_id`` known).
    Concurrent callers with a reserved key wait for the holder to commit or
    release. Reservations expire after ``reservation_timeout_seconds`` so a
    crashed holder cannot block a key forever; committed entries expire
    after ``window_seconds``.

    Every fresh reservation also hands out the key's epoch. The epoch is
    kept for ``window_seconds`` after the key was first reserved, even when
    the reservation is released, so a retry whose earlier commit was lost
    gets the same epoch back. Once the window has passed the key starts a
    new epoch.

    Futures used for waiting belong to the running event loop; one provider
    instance serves one loop.
    """

    def __init__(
        self,
        config: Optional[IdempotencyConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(config or IdempotencyConfig())
        self._clock = clock
        self._stripes = [_Stripe() for _ in range(max(1, self.config.stripes))]

    async def initialize(self) -> None:
        self._initialized = True

    async def shutdown(self) -> None:
        for stripe in self._stripes:
            with stripe.lock:
                for slot in stripe.slots.values():
                    _wake(slot, None)
                stripe.slots.clear()
                stripe.epochs.clear()
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        return ProviderHealth(
            status=ProviderStatus.HEALTHY,
            latency_ms=0.1,
            message=f"In-memory idempotency map with {len(self)} keys",
        )

    def __len__(self) -> int:
        return sum(len(stripe.slots) for stripe in self._stripes)

    def _stripe(self, key: str) -> _Stripe:
        return self._stripes[hash(key) % len(self._stripes)]

    def _epoch(self, stripe: _Stripe, key: str, now: float) -> str:
        # caller holds stripe.lock
        current = stripe.epochs.get(key)
        if current is None or current[1] <= now:
            current = (uuid.uuid4().hex, now + self.config.window_seconds)
            stripe.epochs[key] = current
        return current[0]

    async def check_and_reserve(self, key: str, timeout: Optional[float] = None) -> Reservation:
        loop = asyncio.get_running_loop()
        give_up_at = None if timeout is None else loop.time() + timeout
        stripe = self._stripe(key)

        while True:
            with stripe.lock:
                now = self._clock()
                slot = stripe.slots.get(key)
                if slot is not None and slot.expires_at <= now:
                    del stripe.slots[key]
                    _wake(slot, None)
                    slot = None

                if slot is None:
                    stripe.slots[key] = _Slot(
                        result_id=None,
                        expires_at=now + self.config.reservation_timeout_seconds,
                        waiter=loop.create_future(),
                    )
                    return Reservation(ReservationStatus.FRESH, epoch=self._epoch(stripe, key, now))

                if slot.committed:
                    return Reservation(ReservationStatus.DUPLICATE, slot.result_id)

                waiter = slot.waiter
                wait = slot.expires_at - now

            if give_up_at is not None:
                remaining = give_up_at - loop.time()
                if remaining <= 0:
                    raise DeadlineExceededError(
                        f"Idempotency key {key!r} is held by an in-flight write"
                    )
                wait = min(wait, remaining)

            logger.debug(f"Waiting up to {wait:.3f}s for in-flight write of key {key!r}")
            try:
                await asyncio.wait_for(asyncio.shield(waiter), timeout=wait)
            except asyncio.TimeoutError:
                pass

    async def commit(self, key: str, result_id: str) -> None:
        stripe = self._stripe(key)
        with stripe.lock:
            now = self._clock()
            slot = stripe.slots.get(key)
            if slot is not None and slot.committed and slot.expires_at > now:
                if slot.result_id != result_id:
                    logger.warning(
                        f"Ignoring commit of key {key!r} to {result_id}: "
                        f"already committed to {slot.result_id}"
                    )
                return

            expires_at = now + self.config.window_seconds
            if slot is None:
                slot = _Slot(result_id=result_id, expires_at=expires_at)
                stripe.slots[key] = slot
            else:
                slot.result_id = result_id
                slot.expires_at = expires_at
            _wake(slot, result_id)

    async def release(self, key: str) -> None:
        stripe = self._stripe(key)
        with stripe.lock:
            slot = stripe.slots.get(key)
            if slot is None or slot.committed:
                return
            del stripe.slots[key]
            _wake(slot, None)

    async def get_entry(self, key: str) -> Optional[IdempotencyEntry]:
        stripe = self._stripe(key)
        with stripe.lock:
            slot = stripe.slots.get(key)
            if slot is None or not slot.committed or slot.expires_at <= self._clock():
                return None
            return IdempotencyEntry(
                key=key,
                result_id=slot.result_id,
                expires_at=datetime.fromtimestamp(slot.expires_at, tz=timezone.utc),
            )

    async def sweep(self) -> int:
        removed = 0
        for stripe in self._stripes:
            with stripe.lock:
                now = self._clock()
                expired = [k for k, s in stripe.slots.items() if s.expires_at <= now]
                for key in expired:
                    _wake(stripe.slots.pop(key), None)
                removed += len(expired)
                for key in [k for k, (_, exp) in stripe.epochs.items() if exp <= now]:
                    del stripe.epochs[key]
        return removed
