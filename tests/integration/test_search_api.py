"""Integration tests for the search service HTTP API."""

import sys
import time
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

# Add service root to path
project_root = Path(__file__).parent.parent.parent
sys.path.append(str(project_root / "service-search"))

from app.main import create_app
from docsearch.common.config import ServiceConfig
from docsearch.hybrid.engine import SearchEngine
from docsearch.retrievers.cache_manager import CorpusCacheManager
from docsearch.retrievers.corpus_source import CorpusSource
from tests.fakes import (
    QUERY_VECTOR,
    SAMPLE_DOCUMENTS,
    VERSIONED_INDEX,
    FakeEmbeddingModel,
    FakeLoader,
    FakeRedis,
    json_transport,
    make_enhancer,
)


def service_config(**overrides):
    overrides.setdefault("docsearch_service_name", "search-service-test")
    overrides.setdefault("docsearch_log_format", "console")
    return ServiceConfig(**overrides)


def engine_factory(routes=None, with_enhancer=False):
    routes = routes if routes is not None else {
        "enhanced-search-index.json": SAMPLE_DOCUMENTS,
        "docs-index-versioned.json": VERSIONED_INDEX,
    }

    def factory(config, metrics):
        client = httpx.AsyncClient(transport=json_transport(routes))
        enhancer = None
        if with_enhancer:
            enhancer = make_enhancer(FakeLoader(model=FakeEmbeddingModel({"install": QUERY_VECTOR})))
        return SearchEngine(
            config=config,
            source=CorpusSource("https://docs.example.com/assets", http_client=client),
            cache=CorpusCacheManager(redis_client=FakeRedis(), metrics=metrics),
            enhancer=enhancer,
            metrics=metrics,
        )

    return factory


@pytest.fixture
def client():
    app = create_app(service_config(), engine_factory=engine_factory())
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.integration
class TestSearchAPI:
    """End-to-end requests against the search service."""

    def test_root_and_health(self, client):
        assert client.get("/").json()["status"] == "running"

        health = client.get("/health").json()
        assert health["status"] == "healthy"
        assert health["documents"] == 5
        assert health["enhancement_state"] == "disabled"

    def test_search(self, client):
        response = client.post("/api/v1/search", json={"query": "install cli", "location": "/docs"})

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["semantic"] is False
        assert data["results"][0]["slug"] == "getting-started"
        assert data["results"][0]["final_score"] == data["results"][0]["keyword_score"]
        assert "X-Process-Time" in response.headers

    def test_search_all_contexts(self, client):
        data = client.post(
            "/api/v1/search",
            json={"query": "install cli", "location": "/docs", "search_all_contexts": True},
        ).json()

        assert data["total"] == 4

    def test_search_validation(self, client):
        assert client.post("/api/v1/search", json={}).status_code == 422
        assert client.post("/api/v1/search", json={"query": "cli", "limit": -1}).status_code == 422

    def test_suggest(self, client):
        data = client.get("/api/v1/suggest", params={"q": "configu", "limit": 3}).json()

        assert data["query"] == "configu"
        assert data["suggestions"][0]["suggestion"] == "configuration"

    def test_enhancement_without_enhancer(self, client):
        status = client.get("/api/v1/enhancement").json()
        assert status["state"] == "disabled"

        assert client.post("/api/v1/enhancement/dismiss").json()["state"] == "disabled"

    def test_documents(self, client):
        document = {
            "slug": "deploy",
            "title": "Deploy",
            "chunks": [{"id": "deploy-0", "text": "Ship with the pipeline", "preview": "Ship..."}],
        }

        assert client.put("/api/v1/documents", json=document).json() == {"status": "indexed", "slug": "deploy"}
        hits = client.post("/api/v1/search", json={"query": "pipeline"}).json()
        assert hits["results"][0]["chunk_id"] == "deploy-0"

        clash = {"slug": "other", "chunks": [{"id": "deploy-0", "text": "clash"}]}
        assert client.put("/api/v1/documents", json=clash).status_code == 409

        assert client.delete("/api/v1/documents/deploy").status_code == 200
        assert client.delete("/api/v1/documents/deploy").status_code == 404
        assert client.delete("/api/v1/documents/drafts/plugins").json()["slug"] == "drafts/plugins"

    def test_reload(self, client):
        data = client.post("/api/v1/corpus/reload").json()

        assert data["status"] == "reloaded"
        assert data["stats"]["origin"] == "network"

    def test_versions_and_stats(self, client):
        versions = client.get("/api/v1/versions").json()
        assert versions["production_version"] == "v1.0.0"
        assert [v["version"] for v in versions["versions"]] == ["v1.0.0", "v2.0.0", "v3.0.0"]
        assert [s["state"] for s in versions["states"]] == ["drafts", "proposals"]

        assert client.get("/api/v1/stats").json()["chunks"] == 6

    def test_metrics(self, client):
        client.post("/api/v1/search", json={"query": "install"})

        body = client.get("/metrics").text
        assert "http_requests_total" in body
        assert 'docsearch_search_requests_total{mode="keyword"}' in body


@pytest.mark.integration
def test_corpus_unavailable_is_still_healthy():
    app = create_app(service_config(), engine_factory=engine_factory(routes={}))

    with TestClient(app) as client:
        assert client.get("/health").json()["chunks"] == 0
        assert client.post("/api/v1/search", json={"query": "install"}).json()["total"] == 0
        assert client.post("/api/v1/corpus/reload").json()["status"] == "unavailable"


@pytest.mark.integration
def test_enhancement_lifecycle_over_http():
    app = create_app(service_config(), engine_factory=engine_factory(with_enhancer=True))

    with TestClient(app) as client:
        deadline = time.monotonic() + 5
        status = client.get("/api/v1/enhancement").json()
        while status["state"] != "ready" and time.monotonic() < deadline:
            time.sleep(0.01)
            status = client.get("/api/v1/enhancement").json()

        assert status["state"] == "ready"
        assert status["progress"] == 100

        dismissed = client.post("/api/v1/enhancement/dismiss").json()
        assert dismissed["state"] == "disabled"
        assert dismissed["can_dismiss"] is False
