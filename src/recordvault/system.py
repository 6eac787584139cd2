"""Record System - High-level API for recordvault.

This is the main entry point of the core. It wires the container's
components into the ingestion and retrieval services and owns the
background idempotency sweeper.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from .config import SystemConfig
from .container import Container
from .interfaces import Record, WriteAck, WriteRequest
from .providers.base import CacheProvider, IdempotencyProvider, StoreProvider
from .retry import Deadline
from .services import IngestionService, RetrievalService
from .validation import SchemaRegistry

logger = logging.getLogger(__name__)

DRAIN_TIMEOUT_SECONDS = 5.0


class RecordSystem:
    """High-level record system API.

    Usage:
        config = SystemConfig.from_env()
        system = RecordSystem(config)

        async with system:
            ack = await system.write({"name": "a"}, schema_version=1, idempotency_key="k1")
            record = await system.read(ack.id)

    Or manually:
        system = RecordSystem(config)
        await system.start()
        try:
            await system.write({"name": "a"}, schema_version=1)
        finally:
            await system.stop()
    """

    def __init__(
        self,
        config: SystemConfig,
        registry: Optional[SchemaRegistry] = None,
        store: Optional[StoreProvider] = None,
        tracker: Optional[IdempotencyProvider] = None,
        cache: Optional[CacheProvider] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize record system.

        Args:
            config: System configuration
            registry: Schema registry (default: built from config)
            store: Store provider override
            tracker: Idempotency tracker override
            cache: Read cache override
            id_factory: Id generator for writes without id or key
        """
        self.config = config
        self._container = Container(config, registry=registry, store=store, tracker=tracker, cache=cache)
        self._id_factory = id_factory
        self._ingestion: Optional[IngestionService] = None
        self._retrieval: Optional[RetrievalService] = None
        self._sweeper: Optional[asyncio.Task] = None
        self._started = False

    async def start(self) -> None:
        """Start the record system."""
        if self._started:
            return

        # Validate config
        errors = self.config.validate()
        if errors:
            raise ValueError(f"Invalid configuration: {errors}")

        await self._container.initialize()

        c = self._container
        self._ingestion = IngestionService(
            validator=c.validator,
            router=c.router,
            store=c.store,
            tracker=c.tracker,
            cache=c.cache,
            retry_policy=c.retry_policy,
            latency_budget_ms=self.config.latency_budget_ms,
            populate_cache=self.config.cache.populate_on_write,
            id_factory=self._id_factory,
        )
        self._retrieval = RetrievalService(
            router=c.router,
            store=c.store,
            cache=c.cache,
            retry_policy=c.retry_policy,
            latency_budget_ms=self.config.latency_budget_ms,
        )
        self._sweeper = asyncio.create_task(
            _idempotency_sweep_loop(c.tracker, self.config.idempotency.sweep_interval_seconds)
        )

        self._started = True
        logger.info(f"Record system started (instance: {self.config.instance_id})")

    async def stop(self) -> None:
        """Stop the record system, letting in-flight writes finish."""
        if not self._started:
            return

        if self._sweeper:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None

        await self._ingestion.drain(timeout=DRAIN_TIMEOUT_SECONDS)
        await self._container.shutdown()
        self._started = False
        logger.info("Record system stopped")

    async def write(
        self,
        payload: Any,
        schema_version: int,
        idempotency_key: Optional[str] = None,
        record_id: Optional[str] = None,
    ) -> WriteAck:
        """Validate and persist a record.

        Writes without ``idempotency_key`` are not deduplicated: submitting
        them twice stores two records.

        Returns:
            WriteAck with the record id and ``created`` or ``duplicate``
        """
        return await self.submit(WriteRequest(
            payload=payload,
            schema_version=schema_version,
            idempotency_key=idempotency_key,
            record_id=record_id,
        ))

    async def submit(self, request: WriteRequest, deadline: Optional[Deadline] = None) -> WriteAck:
        """Run a parsed write request."""
        self._ensure_started()
        return await self._ingestion.write(request, deadline)

    async def read(self, record_id: str, deadline: Optional[Deadline] = None) -> Optional[Record]:
        """Get a record by id, ``None`` when it does not exist."""
        self._ensure_started()
        return await self._retrieval.retrieve(record_id, deadline)

    async def exists(self, record_id: str) -> bool:
        self._ensure_started()
        return await self._retrieval.exists(record_id)

    async def liveness(self) -> bool:
        """Cheap check that the store is reachable."""
        if not self._started:
            return False
        health = await self._container.store.health_check()
        return health.ok

    async def health(self) -> dict[str, Any]:
        """Check system health.

        Returns:
            Dict with provider health statuses including:
            - status: "running" or "stopped"
            - instance_id: This instance's ID
            - providers: Dict of provider name to health info
        """
        if not self._started:
            return {"status": "stopped"}

        health = await self._container.health_check()
        return {
            "status": "running",
            "instance_id": self.config.instance_id,
            "providers": {
                name: {"status": h.status.value, "latency_ms": h.latency_ms, "message": h.message}
                for name, h in health.items()
            },
        }

    async def stats(self) -> dict[str, Any]:
        """Get record statistics.

        Returns:
            Dict with record count, routing, cache counters and in-flight writes
        """
        self._ensure_started()

        c = self._container
        return {
            "instance_id": self.config.instance_id,
            "total_records": await c.store.count(),
            "mapping_version": c.router.current_version,
            "read_versions": list(c.router.read_versions),
            "schema_versions": c.registry.versions(),
            "pending_writes": self._ingestion.pending_writes,
            "cache": c.cache.stats() if c.cache else None,
        }

    @property
    def container(self) -> Container:
        return self._container

    def _ensure_started(self) -> None:
        if not self._started:
            raise RuntimeError("RecordSystem not started. Call start() first.")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()


async def _idempotency_sweep_loop(tracker: IdempotencyProvider, interval: float) -> None:
    """Background task that periodically drops expired idempotency entries."""
    while True:
        try:
            await asyncio.sleep(interval)
            removed = await tracker.sweep()
            if removed > 0:
                logger.info(f"Idempotency sweep: removed {removed} expired keys")
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Idempotency sweep failed")
