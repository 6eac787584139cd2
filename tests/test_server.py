"""Tests for the HTTP adapter."""

import pytest
from fastapi.testclient import TestClient

from recordvault import RecordSystem, SystemConfig
from recordvault.server import create_app
from recordvault.testing import FaultInjectingStoreProvider


@pytest.fixture
def client(registry):
    system = RecordSystem(SystemConfig.for_testing(instance_id="http-test"), registry=registry)
    app = create_app(system=system)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def down_client(registry):
    system = RecordSystem(
        SystemConfig.for_testing(),
        registry=registry,
        store=FaultInjectingStoreProvider(unavailable=True),
    )
    with TestClient(create_app(system=system)) as client:
        yield client


class TestWriteEndpoint:

    def test_created_then_duplicate(self, client):
        body = {"payload": {"name": "a"}, "schema_version": 1, "idempotency_key": "k1"}

        first = client.post("/v1/records", json=body)
        assert first.status_code == 201
        assert first.json()["status"] == "created"

        second = client.post("/v1/records", json=body)
        assert second.status_code == 200
        assert second.json() == {"id": first.json()["id"], "status": "duplicate"}

    def test_idempotency_key_header(self, client):
        body = {"payload": {"name": "a"}, "schema_version": 1}
        first = client.post("/v1/records", json=body, headers={"Idempotency-Key": "h1"})
        second = client.post("/v1/records", json=body, headers={"Idempotency-Key": "h1"})
        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

    def test_validation_error(self, client):
        response = client.post("/v1/records", json={"payload": {}, "schema_version": 1})
        assert response.status_code == 422
        data = response.json()
        assert data["kind"] == "validation"
        assert data["errors"] == [{"path": "name", "message": "is required"}]

    def test_conflict(self, client):
        client.post("/v1/records", json={"payload": {"name": "a"}, "schema_version": 1, "id": "r1"})
        response = client.post(
            "/v1/records", json={"payload": {"name": "b"}, "schema_version": 1, "id": "r1"}
        )
        assert response.status_code == 409
        assert response.json()["kind"] == "conflict"

    def test_unavailable(self, down_client):
        response = down_client.post("/v1/records", json={"payload": {"name": "a"}, "schema_version": 1})
        assert response.status_code == 503
        assert response.json()["kind"] == "unavailable"


class TestReadEndpoint:

    def test_read(self, client):
        created = client.post("/v1/records", json={"payload": {"name": "a"}, "schema_version": 1})
        record_id = created.json()["id"]

        response = client.get(f"/v1/records/{record_id}")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == record_id
        assert data["payload"] == {"name": "a"}
        assert data["schema_version"] == 1

    def test_not_found(self, client):
        response = client.get("/v1/records/missing")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_unavailable_is_not_404(self, down_client):
        response = down_client.get("/v1/records/r1")
        assert response.status_code == 503


class TestOperationalEndpoints:

    def test_root(self, client):
        assert client.get("/").json()["service"] == "recordvault"

    def test_liveness(self, client):
        response = client.get("/v1/health/live")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_liveness_store_down(self, down_client):
        assert down_client.get("/v1/health/live").status_code == 503

    def test_health(self, client):
        data = client.get("/v1/health").json()
        assert data["status"] == "running"
        assert data["instance_id"] == "http-test"
        assert data["providers"]["store"]["status"] == "healthy"

    def test_stats(self, client):
        client.post("/v1/records", json={"payload": {"name": "a"}, "schema_version": 1})
        data = client.get("/v1/stats").json()
        assert data["total_records"] == 1
        assert data["schema_versions"] == [1, 2]
