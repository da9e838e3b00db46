import logging

import pytest
from fastapi.testclient import TestClient

from server.api_server import app
from shared.errors import ConfigurationError, QueryValidationError, SyncAbortedError, VectorStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import SearchResponse, SearchResultItem
from shared.models.sync import SyncSummary
from shared.models.vector import IndexMetadata

HEADERS = {"X-API-Key": "test-key"}


class StubQueryService:
    def __init__(self):
        self.requests = []

    async def do_query(self, request):
        self.requests.append(request)
        if not request.query.strip():
            raise QueryValidationError("Query text must not be empty.")
        item = SearchResultItem(doc_id="123", title="Reset password", score=0.87, content="Use the settings page.")
        return SearchResponse(query=request.query, results=[item], total=1)


class StubReconciler:
    def __init__(self):
        self.error = None

    async def do_sync(self):
        if self.error:
            raise self.error
        return SyncSummary(collection="test", added=["1"], embed_calls=1, upserted=1)


class StubVectorClient:
    def __init__(self):
        self.fail = False

    async def do_fetch_index_info(self):
        if self.fail:
            raise VectorStoreError("index unreachable", status_code=503, transient=True)
        return IndexMetadata(name="confluence-pages-index", dimension=768, metric="cosine", record_count=3)


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("API_SERVER_API_KEY", "test-key")
    logger = logging.getLogger("vector_sync_bridge.tests")
    app.state.logging = logger
    app.state.helper_config = HelperConfig(logger=logger)
    app.state.query_service = StubQueryService()
    app.state.reconciler = StubReconciler()
    app.state.vector_client = StubVectorClient()
    # no context manager: the lifespan would boot real backend clients
    return TestClient(app)


def test_health_needs_no_key(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_query_requires_api_key(client):
    assert client.post("/query", json={"query": "password"}).status_code == 401
    assert client.post("/query", json={"query": "password"}, headers={"X-API-Key": "wrong"}).status_code == 401


def test_query_returns_results(client):
    response = client.post("/query", json={"query": "how do I reset my password?", "top_k": 3}, headers=HEADERS)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["results"][0]["doc_id"] == "123"
    assert app.state.query_service.requests[0].top_k == 3


def test_query_validation_errors(client):
    assert client.post("/query", json={"query": "  "}, headers=HEADERS).status_code == 422
    assert client.post("/query", json={"query": "x", "top_k": 0}, headers=HEADERS).status_code == 422


def test_sync_returns_summary(client):
    response = client.post("/sync", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["added"] == ["1"]


def test_sync_error_statuses(client):
    app.state.reconciler.error = ConfigurationError("dimension mismatch")
    assert client.post("/sync", headers=HEADERS).status_code == 500

    app.state.reconciler.error = SyncAbortedError("source down")
    response = client.post("/sync", headers=HEADERS)
    assert response.status_code == 503
    assert response.json()["detail"] == "source down"


def test_index_info(client):
    response = client.get("/index", headers=HEADERS)

    assert response.status_code == 200
    assert response.json()["dimension"] == 768

    app.state.vector_client.fail = True
    assert client.get("/index", headers=HEADERS).status_code == 502
