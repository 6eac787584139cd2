"""Testing utilities for recordvault."""

from .mocks import FaultInjectingStoreProvider, FlakyCommitIdempotencyProvider

__all__ = [
    "FaultInjectingStoreProvider",
    "FlakyCommitIdempotencyProvider",
]
