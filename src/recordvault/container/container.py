"""Dependency injection container."""

from typing import Optional
import logging

from ..config import SystemConfig
from ..config.providers import StoreProviderType
from ..providers.base import (
    StoreProvider,
    IdempotencyProvider,
    CacheProvider,
    ProviderHealth,
)
from ..retry import RetryPolicy
from ..routing import PartitionRouter, ShardMapping
from ..validation import SchemaRegistry, Validator

logger = logging.getLogger(__name__)


class Container:
    """Dependency injection container.

    Builds and owns the components of one recordvault instance and manages
    their lifecycle. Nothing here is a module-level singleton, so tests can
    build as many isolated containers as they need. Providers passed to the
    constructor are used instead of the configured ones.

    Usage:
        container = Container(config)
        await container.initialize()

        store = container.store
        tracker = container.tracker

        await container.shutdown()
    """

    def __init__(
        self,
        config: SystemConfig,
        registry: Optional[SchemaRegistry] = None,
        store: Optional[StoreProvider] = None,
        tracker: Optional[IdempotencyProvider] = None,
        cache: Optional[CacheProvider] = None,
    ):
        self.config = config
        self._registry = registry
        self._store = store
        self._tracker = tracker
        self._cache = cache
        self._router: Optional[PartitionRouter] = None
        self._validator: Optional[Validator] = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize all components.

        Pure components (registry, validator, router) are built first, then
        providers are initialized in dependency order:
        1. Store (source of truth)
        2. Idempotency tracker
        3. Read cache (optional)
        """
        if self._initialized:
            return

        logger.info(f"Initializing container for instance: {self.config.instance_id}")

        if self._registry is None:
            self._registry = self._create_registry()
        self._validator = Validator(
            self._registry,
            max_payload_bytes=self.config.validation.max_payload_bytes,
            collect_all=self.config.validation.collect_all_errors,
        )
        self._router = self._create_router()

        if self._store is None:
            self._store = self._create_store_provider()
        await self._store.initialize()

        if self._tracker is None:
            self._tracker = self._create_idempotency_provider()
        await self._tracker.initialize()

        if self._cache is None and self.config.cache.enabled:
            self._cache = self._create_cache_provider()
        if self._cache:
            await self._cache.initialize()

        self._initialized = True
        logger.info(
            f"Container initialized (store: {type(self._store).__name__}, "
            f"shards: {self.config.routing.partition_count}, "
            f"schemas: {self._registry.versions()}, "
            f"cache: {'on' if self._cache else 'off'})"
        )

    async def shutdown(self) -> None:
        """Shutdown all providers gracefully."""
        if not self._initialized:
            return

        logger.info("Shutting down container")

        # Shutdown in reverse order
        if self._cache:
            await self._cache.shutdown()
        await self._tracker.shutdown()
        await self._store.shutdown()

        self._initialized = False
        logger.info("Container shutdown complete")

    async def health_check(self) -> dict[str, ProviderHealth]:
        """Check health of all providers."""
        results = {}

        if self._store:
            results["store"] = await self._store.health_check()
        if self._tracker:
            results["idempotency"] = await self._tracker.health_check()
        if self._cache:
            results["cache"] = await self._cache.health_check()

        return results

    @property
    def store(self) -> StoreProvider:
        """Get the store provider."""
        if not self._initialized:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._store

    @property
    def tracker(self) -> IdempotencyProvider:
        """Get the idempotency tracker."""
        if not self._initialized:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._tracker

    @property
    def cache(self) -> Optional[CacheProvider]:
        """Get the read cache (None when disabled)."""
        return self._cache

    @property
    def router(self) -> PartitionRouter:
        if not self._router:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._router

    @property
    def validator(self) -> Validator:
        if not self._validator:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._validator

    @property
    def registry(self) -> SchemaRegistry:
        if self._registry is None:
            raise RuntimeError("Container not initialized. Call initialize() first.")
        return self._registry

    @property
    def retry_policy(self) -> RetryPolicy:
        cfg = self.config.retry
        return RetryPolicy(
            max_attempts=cfg.max_attempts,
            backoff_base_ms=cfg.backoff_base_ms,
            backoff_multiplier=cfg.backoff_multiplier,
            backoff_max_ms=cfg.backoff_max_ms,
        )

    def _create_registry(self) -> SchemaRegistry:
        """Create the schema registry from inline schemas and the schema file."""
        cfg = self.config.validation
        registry = SchemaRegistry.from_dicts(cfg.schemas)
        if cfg.schemas_path:
            loaded = SchemaRegistry.from_file(cfg.schemas_path)
            for version in loaded.versions():
                registry.register(loaded.get(version))
        return registry

    def _create_router(self) -> PartitionRouter:
        """Create the partition router from the routing config."""
        cfg = self.config.routing
        mappings = [ShardMapping(cfg.version, cfg.partition_count, cfg.strategy)]
        mappings += [ShardMapping(m.version, m.partition_count, m.strategy) for m in cfg.mappings]
        return PartitionRouter(
            mappings,
            write_version=cfg.write_version if cfg.write_version is not None else cfg.version,
            read_versions=cfg.read_versions or None,
        )

    def _create_store_provider(self) -> StoreProvider:
        """Create store provider based on config."""
        from ..providers.memory import InMemoryStoreProvider
        from ..providers.lancedb import LanceDBStoreProvider
        from ..providers.http import HttpStoreProvider

        cfg = self.config.store

        if cfg.provider == StoreProviderType.MEMORY:
            return InMemoryStoreProvider(cfg)
        elif cfg.provider == StoreProviderType.LANCEDB:
            return LanceDBStoreProvider(cfg)
        elif cfg.provider == StoreProviderType.HTTP:
            return HttpStoreProvider(cfg)
        else:
            raise ValueError(f"Unknown store provider: {cfg.provider}")

    def _create_idempotency_provider(self) -> IdempotencyProvider:
        from ..providers.idempotency import InMemoryIdempotencyProvider

        return InMemoryIdempotencyProvider(self.config.idempotency)

    def _create_cache_provider(self) -> CacheProvider:
        from ..providers.cache import LRUCacheProvider

        return LRUCacheProvider(self.config.cache)

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.shutdown()
