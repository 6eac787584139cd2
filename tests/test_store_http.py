"""Tests for the HTTP document store provider."""

import json
from urllib.parse import unquote

import httpx
import pytest

from recordvault.config import StoreConfig, StoreProviderType
from recordvault.errors import ConflictError, UnavailableError
from recordvault.interfaces import Record
from recordvault.providers.http import HttpStoreProvider


class FakeDocumentStore:
    """In-process stand-in for the remote document store."""

    def __init__(self):
        self.shards: dict[str, dict[str, dict]] = {}
        self.fail_with: int | None = None
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with)

        raw_path = request.url.raw_path.decode().split("?")[0]
        parts = [unquote(p) for p in raw_path.strip("/").split("/")]
        if parts == ["health"]:
            return httpx.Response(200, json={"status": "ok"})
        if parts == ["stats"]:
            return httpx.Response(200, json={"count": sum(len(s) for s in self.shards.values())})

        _, shard, _, record_id = parts
        shard_data = self.shards.setdefault(shard, {})
        existing = shard_data.get(record_id)

        if request.method == "PUT":
            body = json.loads(request.content)
            if existing is None:
                shard_data[record_id] = body
                return httpx.Response(201)
            if existing["payload"] == body["payload"]:
                return httpx.Response(200)
            return httpx.Response(409)

        if existing is None:
            return httpx.Response(404)
        if request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(200, json=existing)


@pytest.fixture
def backend():
    return FakeDocumentStore()


@pytest.fixture
async def http_store(backend):
    config = StoreConfig(
        provider=StoreProviderType.HTTP,
        base_url="http://store.test",
        api_key="secret",
    )
    provider = HttpStoreProvider(config, transport=httpx.MockTransport(backend))
    await provider.initialize()
    yield provider
    await provider.shutdown()


class TestHttpStore:

    async def test_put_and_get(self, http_store):
        record = Record(id="r1", payload={"name": "a"}, schema_version=2)
        assert (await http_store.put(3, record)).created

        fetched = await http_store.get(3, "r1")
        assert fetched.id == "r1"
        assert fetched.payload == {"name": "a"}
        assert fetched.schema_version == 2
        assert fetched.created_at == record.created_at

    async def test_sends_bearer_token(self, http_store, backend):
        await http_store.get(0, "r1")
        assert backend.requests[0].headers["Authorization"] == "Bearer secret"

    async def test_id_is_url_quoted(self, http_store, backend):
        await http_store.get(0, "a/b c")
        assert backend.requests[0].url.raw_path == b"/shards/0/records/a%2Fb%20c"

    async def test_missing_is_none(self, http_store):
        assert await http_store.get(0, "nope") is None

    async def test_identical_put(self, http_store):
        await http_store.put(0, Record(id="r1", payload={"name": "a"}))
        assert not (await http_store.put(0, Record(id="r1", payload={"name": "a"}))).created

    async def test_conflict(self, http_store):
        await http_store.put(0, Record(id="r1", payload={"name": "a"}))
        with pytest.raises(ConflictError):
            await http_store.put(0, Record(id="r1", payload={"name": "b"}))

    async def test_exists(self, http_store):
        await http_store.put(1, Record(id="r1", payload={}))
        assert await http_store.exists(1, "r1")
        assert not await http_store.exists(1, "r2")

    async def test_count(self, http_store):
        await http_store.put(0, Record(id="r1", payload={}))
        await http_store.put(1, Record(id="r2", payload={}))
        assert await http_store.count() == 2

    @pytest.mark.parametrize("status", [429, 500, 503])
    async def test_server_errors_are_unavailable(self, http_store, backend, status):
        backend.fail_with = status
        with pytest.raises(UnavailableError):
            await http_store.get(0, "r1")

    async def test_transport_error_is_unavailable(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        provider = HttpStoreProvider(
            StoreConfig(base_url="http://store.test"),
            transport=httpx.MockTransport(refuse),
        )
        await provider.initialize()
        try:
            with pytest.raises(UnavailableError):
                await provider.put(0, Record(id="r1", payload={}))
            assert not (await provider.health_check()).ok
        finally:
            await provider.shutdown()

    async def test_health(self, http_store, backend):
        assert (await http_store.health_check()).ok
        backend.fail_with = 503
        assert not (await http_store.health_check()).ok

    async def test_requires_base_url(self):
        with pytest.raises(ValueError):
            await HttpStoreProvider(StoreConfig()).initialize()

    async def test_not_initialized(self):
        provider = HttpStoreProvider(StoreConfig(base_url="http://store.test"))
        with pytest.raises(UnavailableError):
            await provider.get(0, "r1")
