"""Tests for the HTTP search service."""

import pytest
from fastapi.testclient import TestClient

from semsearch.api.main import create_app
from semsearch.embeddings.base import EmbeddingProviderError
from semsearch.embeddings.gateway import EmbeddingGateway
from semsearch.hybrid.search_manager import SearchManager
from semsearch.vector_store.base import VectorStoreConnectionError

from .fakes import SCENARIO_LEXICAL_HITS, SCENARIO_VECTOR_HITS, ScriptedStore, StaticProvider


def make_client(store, provider=None, metrics=None):
    provider = provider or StaticProvider([1.0, 0.0, 0.0])
    manager = SearchManager(EmbeddingGateway([provider]), store, metrics=metrics)
    return TestClient(create_app(search_manager=manager))


@pytest.fixture
def client(scenario_store, metrics):
    with make_client(scenario_store, metrics=metrics) as client:
        yield client


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    body = response.json()
    assert body["service"] == "semsearch"
    assert body["endpoints"]["hybrid_search"] == "/api/v1/search/hybrid"


def test_hybrid_search_endpoint(client):
    response = client.post(
        "/api/v1/search/hybrid",
        json={"query": "grid outage", "top_k": 3, "threshold": 0.0}
    )

    assert response.status_code == 200
    assert "X-Process-Time" in response.headers
    body = response.json()
    assert body["total"] == 3
    assert body["query"] == "grid outage"
    assert [r["identity"] for r in body["results"]] == [1, 2, 3]
    assert body["results"][0]["hybrid_score"] == pytest.approx(0.7)
    assert body["results"][1]["bm25_score"] == 10.0
    assert body["results"][2]["payload"] == {"id": 3, "content": "three"}


def test_hybrid_search_client_path(client):
    response = client.post(
        "/api/v1/search/hybrid",
        json={"query": "grid", "normalization": "none", "alpha": 0.0, "beta": 1.0, "threshold": 0.6}
    )
    assert response.status_code == 200
    assert [r["identity"] for r in response.json()["results"]] == [1]


def test_invalid_options_return_422(client):
    response = client.post("/api/v1/search/hybrid", json={"query": "grid", "top_k": 0})
    assert response.status_code == 422

    response = client.post("/api/v1/search/hybrid", json={"query": "grid", "alpha": -1})
    assert response.status_code == 422

    response = client.post("/api/v1/search/hybrid", json={"query": "grid", "normalization": "softmax"})
    assert response.status_code == 422


def test_embedding_failure_returns_502():
    provider = StaticProvider([1.0], error=EmbeddingProviderError("quota exceeded", "openai"))
    store = ScriptedStore(SCENARIO_VECTOR_HITS, SCENARIO_LEXICAL_HITS)

    with make_client(store, provider=provider) as client:
        response = client.post("/api/v1/search/hybrid", json={"query": "grid"})

    assert response.status_code == 502
    assert "quota exceeded" in response.json()["detail"]
    assert store.calls == []


def test_store_failure_returns_503():
    store = ScriptedStore(hybrid_error=VectorStoreConnectionError("database unavailable"))

    with make_client(store) as client:
        response = client.post("/api/v1/search/hybrid", json={"query": "grid"})

    assert response.status_code == 503
    assert "database unavailable" in response.json()["detail"]


def test_semantic_search_endpoint(client):
    response = client.post("/api/v1/search/semantic", json={"query": "grid", "threshold": 0.6})

    assert response.status_code == 200
    body = response.json()
    assert [r["identity"] for r in body["results"]] == [1]
    assert body["results"][0]["vector_score"] == 0.9


def test_providers_endpoint(client):
    response = client.get("/api/v1/providers", params={"validate": "true"})

    assert response.status_code == 200
    body = response.json()
    assert body["enable_fallback"] is False
    assert body["providers"][0]["provider"] == "openai"
    assert body["providers"][0]["is_primary"] is True
    assert body["providers"][0]["is_valid"] is True


def test_health_endpoint(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_unhealthy_store_returns_503():
    with make_client(ScriptedStore(healthy=False)) as client:
        response = client.get("/health")
    assert response.status_code == 503
    assert response.json()["status"] == "unhealthy"


def test_metrics_endpoint(client):
    client.post("/api/v1/search/hybrid", json={"query": "grid"})
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert "search_requests_total" in response.text


def test_shutdown_closes_resources(scenario_store):
    provider = StaticProvider([1.0, 0.0, 0.0])
    with make_client(scenario_store, provider=provider):
        pass
    assert scenario_store.closed
    assert provider.closed
