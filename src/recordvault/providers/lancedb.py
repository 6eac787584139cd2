"""LanceDB store provider."""

import asyncio
import json
import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .base import StoreProvider, ProviderHealth, ProviderStatus
from ..config.providers import StoreConfig
from ..errors import ConflictError, UnavailableError
from ..interfaces import PutResult, Record

logger = logging.getLogger(__name__)


class LanceDBStoreProvider(StoreProvider[StoreConfig]):
    """LanceDB-backed store with one table per shard.

    LanceDB calls are blocking, so they run in worker threads. A per-shard
    asyncio lock makes the existence check and the insert of ``put`` atomic
    for this process.
    """

    def __init__(self, config: StoreConfig):
        super().__init__(config)
        self._db = None
        self._tables: dict[int, Any] = {}
        self._tables_guard = threading.Lock()
        self._shard_locks: dict[int, asyncio.Lock] = {}

    async def initialize(self) -> None:
        try:
            import lancedb
        except ImportError:
            raise ImportError("LanceDB not installed. Run: pip install lancedb")

        if self.config.uri:
            self._db = lancedb.connect(self.config.uri, api_key=self.config.api_key)
        elif self.config.path:
            Path(self.config.path).expanduser().mkdir(parents=True, exist_ok=True)
            self._db = lancedb.connect(str(Path(self.config.path).expanduser()))
        else:
            raise ValueError("LanceDB requires path or uri")

        self._initialized = True
        logger.info(f"LanceDB store ready at {self.config.uri or self.config.path}")

    async def shutdown(self) -> None:
        self._db = None
        self._tables.clear()
        self._shard_locks.clear()
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        if self._db is None:
            return ProviderHealth(
                status=ProviderStatus.UNAVAILABLE,
                message="Database not initialized"
            )

        try:
            start = time.perf_counter()
            names = await asyncio.to_thread(self._db.table_names)
            latency = (time.perf_counter() - start) * 1000
            return ProviderHealth(
                status=ProviderStatus.HEALTHY,
                latency_ms=latency,
                message=f"LanceDB with {len(names)} tables"
            )
        except Exception as e:
            return ProviderHealth(
                status=ProviderStatus.UNAVAILABLE,
                message=str(e)
            )

    def table_name(self, shard_id: int) -> str:
        return f"{self.config.table_prefix}_{shard_id:04d}"

    def _table(self, shard_id: int):
        with self._tables_guard:
            table = self._tables.get(shard_id)
            if table is None:
                name = self.table_name(shard_id)
                if name in self._db.table_names():
                    table = self._db.open_table(name)
                else:
                    table = self._create_table(name)
                self._tables[shard_id] = table
            return table

    def _create_table(self, name: str):
        import pyarrow as pa

        schema = pa.schema([
            pa.field("id", pa.string()),
            pa.field("payload", pa.string()),
            pa.field("created_at", pa.string()),
            pa.field("schema_version", pa.int64()),
        ])

        return self._db.create_table(name, schema=schema)

    def _shard_lock(self, shard_id: int) -> asyncio.Lock:
        lock = self._shard_locks.get(shard_id)
        if lock is None:
            lock = self._shard_locks.setdefault(shard_id, asyncio.Lock())
        return lock

    def _ensure_ready(self) -> None:
        if self._db is None:
            raise UnavailableError("LanceDB store not initialized")

    async def put(self, shard_id: int, record: Record) -> PutResult:
        self._ensure_ready()
        async with self._shard_lock(shard_id):
            existing = await self._fetch(shard_id, record.id)
            if existing is not None:
                if existing.same_content(record):
                    return PutResult(created=False)
                raise ConflictError(record.id)

            row = {
                "id": record.id,
                "payload": json.dumps(record.payload, ensure_ascii=False, separators=(",", ":")),
                "created_at": record.created_at.isoformat(),
                "schema_version": record.schema_version,
            }
            try:
                table = await asyncio.to_thread(self._table, shard_id)
                await asyncio.to_thread(table.add, [row])
            except Exception as e:
                logger.error(f"Failed to store record {record.id} on shard {shard_id}: {e}")
                raise UnavailableError(f"LanceDB write failed: {e}") from e
            return PutResult(created=True)

    async def get(self, shard_id: int, record_id: str) -> Optional[Record]:
        self._ensure_ready()
        return await self._fetch(shard_id, record_id)

    async def _fetch(self, shard_id: int, record_id: str) -> Optional[Record]:
        safe_id = self._quote(record_id)
        try:
            table = await asyncio.to_thread(self._table, shard_id)
            rows = await asyncio.to_thread(
                lambda: table.search().where(f"id = '{safe_id}'").limit(1).to_list()
            )
        except Exception as e:
            raise UnavailableError(f"LanceDB read failed: {e}") from e

        if not rows:
            return None
        return self._row_to_record(rows[0])

    async def count(self) -> int:
        self._ensure_ready()
        try:
            names = await asyncio.to_thread(self._db.table_names)
            prefix = f"{self.config.table_prefix}_"
            total = 0
            for name in names:
                if name.startswith(prefix):
                    table = await asyncio.to_thread(self._db.open_table, name)
                    total += await asyncio.to_thread(table.count_rows)
            return total
        except Exception as e:
            raise UnavailableError(f"LanceDB count failed: {e}") from e

    def _quote(self, value: str) -> str:
        return value.replace("'", "''")

    def _row_to_record(self, row: dict) -> Record:
        return Record(
            id=row["id"],
            payload=json.loads(row["payload"]),
            created_at=datetime.fromisoformat(row["created_at"]),
            schema_version=int(row["schema_version"]),
        )
