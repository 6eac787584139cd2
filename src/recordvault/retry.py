"""Bounded retry with exponential backoff under a latency budget."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import DeadlineExceededError, UnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Deadline:
    """Point in time after which a request is abandoned.

    Args:
        budget_seconds: Time allowed from now
        clock: Monotonic clock (injectable for tests)
    """

    def __init__(self, budget_seconds: float, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self.budget_seconds = budget_seconds
        self.expires_at = clock() + budget_seconds

    @classmethod
    def from_ms(cls, budget_ms: float) -> "Deadline":
        return cls(budget_ms / 1000.0)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self._clock() >= self.expires_at

    def __repr__(self) -> str:
        return f"Deadline(remaining={self.remaining() * 1000:.1f}ms)"


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff parameters.

    Attributes:
        max_attempts: Total attempts including the first one
        backoff_base_ms: Delay before the first retry
        backoff_multiplier: Growth factor between retries
        backoff_max_ms: Upper bound on a single delay
    """
    max_attempts: int = 3
    backoff_base_ms: float = 10.0
    backoff_multiplier: float = 2.0
    backoff_max_ms: float = 100.0

    def backoff(self, attempt: int) -> float:
        """Delay in seconds after failed attempt number ``attempt`` (0-based)."""
        delay_ms = min(self.backoff_base_ms * self.backoff_multiplier ** attempt, self.backoff_max_ms)
        return delay_ms / 1000.0


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    deadline: Optional[Deadline] = None,
    describe: str = "operation",
    bound_attempts: bool = True,
) -> T:
    """Run ``operation``, retrying ``UnavailableError`` within bounds.

    Other exceptions propagate immediately. With a deadline, each attempt
    is also cut off when the deadline passes, unless ``bound_attempts`` is
    False (for operations that must not be cancelled half-way; the caller
    then bounds its own wait).

    Raises:
        DeadlineExceededError: the deadline passed during or between attempts
        UnavailableError: ``policy.max_attempts`` attempts all failed
    """
    last_error: Optional[UnavailableError] = None
    for attempt in range(policy.max_attempts):
        if deadline is not None and deadline.expired:
            raise DeadlineExceededError(
                f"{describe}: latency budget exhausted after {attempt} attempt(s)"
                + (f" (last error: {last_error.detail})" if last_error else "")
            )
        try:
            if deadline is None or not bound_attempts:
                return await operation()
            return await asyncio.wait_for(operation(), timeout=deadline.remaining())
        except asyncio.TimeoutError as e:
            raise DeadlineExceededError(
                f"{describe}: latency budget exhausted during attempt {attempt + 1}"
            ) from e
        except DeadlineExceededError:
            raise
        except UnavailableError as e:
            last_error = e
            if attempt + 1 >= policy.max_attempts:
                break
            delay = policy.backoff(attempt)
            if deadline is not None and delay >= deadline.remaining():
                raise DeadlineExceededError(
                    f"{describe}: latency budget exhausted after {attempt + 1} attempt(s) "
                    f"(last error: {e.detail})"
                ) from e
            logger.warning(
                f"{describe} unavailable (attempt {attempt + 1}/{policy.max_attempts}), "
                f"retrying in {delay * 1000:.0f}ms: {e.detail}"
            )
            await asyncio.sleep(delay)

    raise UnavailableError(
        f"{describe} failed after {policy.max_attempts} attempt(s): "
        f"{last_error.detail if last_error else 'unknown error'}"
    ) from last_error
