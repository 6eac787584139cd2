"""Provider interfaces and implementations.

Providers are swappable components with a lifecycle. Each provider type
has an abstract base and concrete implementations.
"""

from .base import (
    Provider,
    ProviderHealth,
    ProviderStatus,
    StoreProvider,
    IdempotencyProvider,
    CacheProvider,
)
from .memory import InMemoryStoreProvider
from .lancedb import LanceDBStoreProvider
from .http import HttpStoreProvider
from .idempotency import InMemoryIdempotencyProvider
from .cache import LRUCacheProvider

__all__ = [
    # Base interfaces
    "Provider",
    "ProviderHealth",
    "ProviderStatus",
    "StoreProvider",
    "IdempotencyProvider",
    "CacheProvider",
    # Store providers
    "InMemoryStoreProvider",
    "LanceDBStoreProvider",
    "HttpStoreProvider",
    # Tracker and cache
    "InMemoryIdempotencyProvider",
    "LRUCacheProvider",
]
