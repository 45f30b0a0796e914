"""
HTTP surface: request validation, X-User-Id scoping, confirm gating on clear
and the error-to-status mapping.
"""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient

from mcp_memory.api import main
from mcp_memory.core.container import get_coordinator
from mcp_memory.core.errors import StructuredStoreFailure

U1 = {"X-User-Id": "u1"}
U2 = {"X-User-Id": "u2"}


@pytest.fixture
def client(coordinator):
    main.app.dependency_overrides[get_coordinator] = lambda: coordinator
    with patch("mcp_memory.api.main.get_coordinator", return_value=coordinator):
        with TestClient(main.app) as test_client:
            yield test_client
    main.app.dependency_overrides.clear()


def write(client, content, tier="long", headers=U1, **extra):
    return client.post("/memories", json={"content": content, "tier": tier, **extra}, headers=headers)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["db_health"] is True
    assert body["vector_store"] == "SimpleInMemoryVectorStore"


def test_startup_rebuilds_overlay_from_sqlite(coordinator):
    coordinator.write("User prefers tea", "u1", "long")
    coordinator.vector_store.clear()

    main.app.dependency_overrides[get_coordinator] = lambda: coordinator
    with patch("mcp_memory.api.main.get_coordinator", return_value=coordinator):
        with TestClient(main.app) as client:
            response = client.post("/memories/search", json={"query": "tea", "tier": "long"}, headers=U1)
    main.app.dependency_overrides.clear()

    assert [r["content"] for r in response.json()["results"]] == ["User prefers tea"]


def test_write_and_dedup(client):
    first = write(client, "User prefers tea", importance=0.4)
    second = write(client, "User prefers tea")

    assert first.status_code == 200
    assert first.json()["id"] == second.json()["id"]
    assert first.json()["id"].startswith("u1:long:")


def test_write_duplicate_threshold_override(client):
    tea = write(client, "User prefers tea").json()["id"]
    merged = write(client, "User drinks coffee", duplicate_threshold=0.5).json()["id"]
    assert merged == tea


@pytest.mark.parametrize("payload", [
    {"content": "  ", "tier": "long"},
    {"content": "tea", "tier": "medium"},
    {"content": "tea", "tier": "long", "importance": 2},
    {"tier": "long"},
])
def test_write_validation(client, payload):
    assert client.post("/memories", json=payload, headers=U1).status_code == 422


def test_user_header_required(client):
    assert client.post("/memories", json={"content": "tea", "tier": "long"}).status_code == 422


def test_batch_write(client):
    response = client.post("/memories/batch", json={"entries": [
        {"content": "User prefers tea", "tier": "long"},
        {"content": "Went hiking", "tier": "short", "importance": 0.9},
    ]}, headers=U1)

    assert response.status_code == 200
    assert len(response.json()["ids"]) == 2
    assert client.get("/memories/stats", headers=U1).json() == {"short": 1, "long": 1, "total": 2}


@pytest.mark.parametrize("count", [0, 51])
def test_batch_write_size_limits(client, count):
    entries = [{"content": "tea", "tier": "long"}] * count
    assert client.post("/memories/batch", json={"entries": entries}, headers=U1).status_code == 422


def test_search(client):
    tea = write(client, "User prefers tea").json()["id"]
    write(client, "User likes hiking")

    response = client.post("/memories/search", json={"query": "beverage preference", "tier": "long"}, headers=U1)

    assert response.status_code == 200
    results = response.json()["results"]
    assert [r["id"] for r in results] == [tea]
    assert results[0]["score"] > 0.9


def test_search_threshold_override(client):
    write(client, "User prefers tea")
    response = client.post("/memories/search", json={
        "query": "coffee", "tier": "long", "search_threshold": 0.5, "recency_weight": 0,
    }, headers=U1)
    assert response.json()["results"][0]["score"] == pytest.approx(0.6)


def test_search_is_scoped_to_caller(client):
    write(client, "User prefers tea")
    response = client.post("/memories/search", json={"query": "tea", "tier": "long"}, headers=U2)
    assert response.json() == {"results": []}


def test_get_and_list(client):
    memory_id = write(client, "User prefers tea", source="chat").json()["id"]

    fetched = client.get(f"/memories/{memory_id}", headers=U1)
    assert fetched.status_code == 200
    assert fetched.json()["content"] == "User prefers tea"
    assert fetched.json()["source"] == "chat"

    listed = client.get("/memories", params={"tier": "long"}, headers=U1)
    assert [m["id"] for m in listed.json()["memories"]] == [memory_id]

    assert client.get(f"/memories/{memory_id}", headers=U2).status_code == 404


def test_update(client):
    memory_id = write(client, "User prefers tea").json()["id"]

    response = client.put(f"/memories/{memory_id}", json={"content": "User likes hiking"}, headers=U1)

    assert response.json() == {"success": True}
    assert client.get(f"/memories/{memory_id}", headers=U1).json()["content"] == "User likes hiking"


def test_update_not_found(client):
    response = client.put("/memories/u1:long:missing", json={"content": "tea"}, headers=U1)
    assert response.status_code == 404
    assert response.json()["error_type"] == "NotFound"


def test_delete(client):
    memory_id = write(client, "User prefers tea").json()["id"]

    assert client.delete(f"/memories/{memory_id}", headers=U2).status_code == 404
    assert client.delete(f"/memories/{memory_id}", headers=U1).json() == {"deleted": True}
    assert client.get(f"/memories/{memory_id}", headers=U1).status_code == 404


def test_clear_requires_confirm(client):
    write(client, "User prefers tea")

    assert client.post("/memories/clear", json={"tier": "long"}, headers=U1).status_code == 400
    assert client.get("/memories/stats", headers=U1).json()["total"] == 1

    response = client.post("/memories/clear", json={"tier": "long", "confirm": True}, headers=U1)
    assert response.json() == {"removed": 1}
    assert client.get("/memories/stats", headers=U1).json()["total"] == 0


def test_embedding_failure_is_bad_gateway(client):
    response = write(client, "nothing recognisable here")
    assert response.status_code == 502
    assert response.json()["error_type"] == "EmbeddingFailure"


def test_vector_failure_is_service_unavailable(client, vector_store):
    with patch.object(vector_store, "query", side_effect=RuntimeError("index offline")):
        response = client.post("/memories/search", json={"query": "tea", "tier": "long"}, headers=U1)
    assert response.status_code == 503
    assert response.json()["error_type"] == "VectorStoreFailure"


def test_structured_failure_is_service_unavailable(client, coordinator):
    with patch.object(coordinator.dao, "get_tier_counts", side_effect=StructuredStoreFailure("disk full")):
        response = client.get("/memories/stats", headers=U1)
    assert response.status_code == 503
    assert response.json() == {"error_type": "StructuredStoreFailure", "message": "disk full"}


def test_value_error_is_unprocessable(client, coordinator):
    with patch.object(coordinator, "stats", side_effect=ValueError("user_id cannot be empty")):
        response = client.get("/memories/stats", headers=U1)
    assert response.status_code == 422
    assert response.json()["error_type"] == "ValueError"
