"""Pytest fixtures for recordvault tests."""

import pytest

from recordvault.config import SystemConfig, IdempotencyConfig, CacheConfig
from recordvault.providers.cache import LRUCacheProvider
from recordvault.providers.idempotency import InMemoryIdempotencyProvider
from recordvault.providers.memory import InMemoryStoreProvider
from recordvault.retry import RetryPolicy
from recordvault.routing import PartitionRouter
from recordvault.services import IngestionService, RetrievalService
from recordvault.system import RecordSystem
from recordvault.validation import SchemaRegistry, Validator


PEOPLE_SCHEMAS = [
    {
        "version": 1,
        "properties": {
            "name": {"type": "string", "min_length": 1},
        },
    },
    {
        "version": 2,
        "properties": {
            "name": {"type": "string", "min_length": 1, "max_length": 64},
            "age": {"type": "integer", "minimum": 0, "maximum": 150, "required": False},
            "tags": {
                "type": "array",
                "items": {"type": "string"},
                "max_items": 5,
                "required": False,
            },
            "address": {
                "type": "object",
                "required": False,
                "properties": {
                    "city": {"type": "string"},
                    "zip": {"type": "string", "pattern": "^[0-9]{5}$", "required": False},
                },
            },
            "nickname": {"type": "string", "required": False, "nullable": True},
        },
    },
]


@pytest.fixture
def registry():
    """Schema registry with a minimal v1 and a richer v2 schema."""
    return SchemaRegistry.from_dicts(PEOPLE_SCHEMAS)


@pytest.fixture
def validator(registry):
    return Validator(registry, max_payload_bytes=1024)


@pytest.fixture
def router():
    return PartitionRouter.single(4)


@pytest.fixture
def store():
    return InMemoryStoreProvider()


@pytest.fixture
def tracker():
    return InMemoryIdempotencyProvider(IdempotencyConfig(window_seconds=60.0, stripes=8))


@pytest.fixture
def cache():
    return LRUCacheProvider(CacheConfig(capacity=16, ttl_seconds=60.0, segments=1))


@pytest.fixture
def fast_retry():
    """Retry policy with millisecond backoff."""
    return RetryPolicy(max_attempts=3, backoff_base_ms=1.0, backoff_max_ms=2.0)


@pytest.fixture
def ingestion(validator, router, store, tracker, cache, fast_retry):
    return IngestionService(
        validator=validator,
        router=router,
        store=store,
        tracker=tracker,
        cache=cache,
        retry_policy=fast_retry,
    )


@pytest.fixture
def retrieval(router, store, cache, fast_retry):
    return RetrievalService(router=router, store=store, cache=cache, retry_policy=fast_retry)


@pytest.fixture
def test_config():
    return SystemConfig.for_testing(instance_id="records-test")


@pytest.fixture
async def system(test_config, registry):
    """A started record system with in-memory providers."""
    async with RecordSystem(test_config, registry=registry) as system:
        yield system
