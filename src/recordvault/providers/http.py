"""HTTP document store provider.

Talks to a horizontally-partitioned document store exposing per-shard
point operations:

    PUT  /shards/{shard}/records/{id}   201 created, 200 identical, 409 conflict
    GET  /shards/{shard}/records/{id}   200 record, 404 missing
    GET  /health                        200 when reachable

Server errors, throttling, timeouts and transport errors are transient and
surface as ``UnavailableError``; the services retry them.
"""

import logging
import time
from typing import Optional
from urllib.parse import quote

import httpx

from .base import StoreProvider, ProviderHealth, ProviderStatus
from ..config.providers import StoreConfig
from ..errors import ConflictError, UnavailableError
from ..interfaces import PutResult, Record

logger = logging.getLogger(__name__)


class HttpStoreProvider(StoreProvider[StoreConfig]):
    """Store provider backed by a remote document store over HTTP."""

    def __init__(
        self,
        config: StoreConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(config)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Create the async HTTP client.

        Raises:
            ValueError: If base_url is not configured
        """
        if not self.config.base_url:
            raise ValueError("HTTP store requires base_url")

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        self._client = httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=httpx.Timeout(self.config.timeout_seconds),
            headers=headers,
            transport=self._transport,
        )
        self._initialized = True

    async def shutdown(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
        self._initialized = False

    async def health_check(self) -> ProviderHealth:
        if not self._client:
            return ProviderHealth(
                status=ProviderStatus.UNAVAILABLE,
                message="Client not initialized"
            )

        try:
            start = time.perf_counter()
            response = await self._client.get("/health")
            latency = (time.perf_counter() - start) * 1000
        except httpx.HTTPError as e:
            return ProviderHealth(status=ProviderStatus.UNAVAILABLE, message=str(e))

        if response.status_code == 200:
            return ProviderHealth(status=ProviderStatus.HEALTHY, latency_ms=latency)
        return ProviderHealth(
            status=ProviderStatus.UNAVAILABLE,
            latency_ms=latency,
            message=f"Health endpoint returned {response.status_code}",
        )

    def _path(self, shard_id: int, record_id: str) -> str:
        return f"/shards/{shard_id}/records/{quote(record_id, safe='')}"

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise UnavailableError("HTTP store not initialized")
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise UnavailableError(f"Store request timed out: {method} {url}") from e
        except httpx.RequestError as e:
            raise UnavailableError(f"Store request failed: {method} {url}: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise UnavailableError(
                f"Store returned {response.status_code} for {method} {url}"
            )
        return response

    async def put(self, shard_id: int, record: Record) -> PutResult:
        response = await self._request("PUT", self._path(shard_id, record.id), json=record.to_dict())

        if response.status_code == 201:
            return PutResult(created=True)
        if response.status_code in (200, 204):
            return PutResult(created=False)
        if response.status_code == 409:
            raise ConflictError(record.id)

        logger.error(f"Unexpected store response {response.status_code} for PUT {record.id}: {response.text}")
        raise UnavailableError(f"Unexpected store response {response.status_code}")

    async def get(self, shard_id: int, record_id: str) -> Optional[Record]:
        response = await self._request("GET", self._path(shard_id, record_id))

        if response.status_code == 404:
            return None
        if response.status_code == 200:
            return Record.from_dict(response.json())

        logger.error(f"Unexpected store response {response.status_code} for GET {record_id}: {response.text}")
        raise UnavailableError(f"Unexpected store response {response.status_code}")

    async def exists(self, shard_id: int, record_id: str) -> bool:
        response = await self._request("HEAD", self._path(shard_id, record_id))
        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise UnavailableError(f"Unexpected store response {response.status_code}")

    async def count(self) -> int:
        response = await self._request("GET", "/stats")
        if response.status_code != 200:
            raise UnavailableError(f"Unexpected store response {response.status_code}")
        return int(response.json().get("count", 0))
