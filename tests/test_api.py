"""
Read API Tests
==============

Endpoints are exercised through FastAPI's TestClient against an engine
opened on the owned-portfolio fixture.
"""

import pytest
from fastapi.testclient import TestClient

from eagraph.api.server import SNAPSHOT_PATH_ENV, create_app
from eagraph.contracts.metamodel import NodeType
from eagraph.engine import ArchitectureEngine

from tests.fixtures import ENTERPRISE_ID, make_metadata, ok, owned_portfolio


@pytest.fixture
def engine(clock):
    engine = ArchitectureEngine(clock=clock)
    ok(engine.open(make_metadata(), owned_portfolio(clock)))
    return engine


@pytest.fixture
def client(engine):
    return TestClient(create_app(engine))


class TestRepositoryEndpoints:

    def test_health(self, client):
        body = client.get("/health").json()
        assert body == {"status": "online", "repository": "Acme EA", "revision": 0}

    def test_repository_summary(self, client, engine):
        ok(engine.add_node(NodeType.TECHNOLOGY, {"name": "VM"}))
        body = client.get("/api/v1/repository").json()
        assert body["governanceMode"] == "Strict"
        assert body["revision"] == 1
        assert (body["objects"], body["relationships"]) == (5, 3)

    def test_objects(self, client):
        ids = [o["id"] for o in client.get("/api/v1/objects").json()]
        assert ids == [ENTERPRISE_ID, "app-crm", "as-crm-api", "tech-k8s"]

    def test_objects_by_type(self, client):
        body = client.get("/api/v1/objects", params={"type": "Application"}).json()
        assert [o["id"] for o in body] == ["app-crm"]
        assert body[0]["attributes"]["name"] == "CRM"

    def test_unknown_object_type(self, client):
        assert client.get("/api/v1/objects", params={"type": "Spaceship"}).status_code == 400

    def test_single_object(self, client):
        assert client.get("/api/v1/objects/tech-k8s").json()["type"] == "Technology"
        assert client.get("/api/v1/objects/ghost").status_code == 404

    def test_relationships(self, client):
        body = client.get("/api/v1/relationships", params={"type": "HOSTED_ON"}).json()
        assert body == [{
            "id": "rel-hosted-k8s",
            "fromId": "app-crm",
            "toId": "tech-k8s",
            "type": "HOSTED_ON",
            "attributes": body[0]["attributes"],
        }]
        assert client.get("/api/v1/relationships", params={"type": "LIKES"}).status_code == 400


class TestAuditAndSnapshot:

    def test_audit_since(self, client, engine):
        ok(engine.add_node(NodeType.TECHNOLOGY, {"name": "A"}))
        ok(engine.add_node(NodeType.TECHNOLOGY, {"name": "B"}))

        entries = client.get("/api/v1/audit", params={"since": 1}).json()
        assert [e["sequence"] for e in entries] == [2]
        assert entries[0]["previousHash"] == engine.audit.entries()[0].entry_hash

    def test_snapshot(self, client):
        body = client.get("/api/v1/snapshot").json()
        assert body["version"] == 1
        assert body["metadata"]["repositoryName"] == "Acme EA"
        assert len(body["relationships"]) == 3


class TestImpactEndpoint:

    def test_impact(self, client):
        body = client.get("/api/v1/impact/tech-k8s").json()
        assert body["rootId"] == "tech-k8s"
        assert [n["id"] for n in body["impacted"]] == ["app-crm", "as-crm-api"]

    def test_impact_depth(self, client):
        body = client.get("/api/v1/impact/tech-k8s", params={"max_depth": 1}).json()
        assert [n["depth"] for n in body["impacted"]] == [1]

    def test_impact_unknown_node(self, client):
        response = client.get("/api/v1/impact/ghost")
        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "NOT_FOUND"


class TestServiceAvailability:

    def test_closed_repository(self, client, engine):
        ok(engine.close())
        assert client.get("/health").status_code == 503
        assert client.get("/api/v1/objects").status_code == 503

    def test_lifespan_loads_snapshot_from_env(self, engine, tmp_path, monkeypatch):
        path = tmp_path / "repository.json"
        path.write_text(ok(engine.dumps_snapshot()), encoding="utf-8")
        monkeypatch.setenv(SNAPSHOT_PATH_ENV, str(path))

        app = create_app()
        with TestClient(app) as client:
            assert client.get("/api/v1/repository").json()["objects"] == 4
        assert not app.state.engine.handle.is_open

    def test_lifespan_without_snapshot(self, monkeypatch):
        monkeypatch.delenv(SNAPSHOT_PATH_ENV, raising=False)
        with TestClient(create_app()) as client:
            assert client.get("/health").status_code == 503

    def test_get_only(self, client):
        assert client.post("/api/v1/objects", json={}).status_code == 405
