import asyncio
import logging
import os
import tempfile

import httpx
import pytest

# setup_logging() writes below ROOT_DIR when server.api_server is imported
os.environ.setdefault("ROOT_DIR", tempfile.mkdtemp(prefix="vector-sync-bridge-tests-"))

from shared.errors import DocumentSourceError, EmbeddingProviderError, VectorStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import QueryConfig, SyncConfig
from shared.models.document import Document
from shared.models.vector import IndexMetadata, MutationResult, QueryMatch, VectorRecord
from shared.state.memory.SyncStateStoreMemory import SyncStateStoreMemory

DIMENSION = 4


def make_vector(text: str) -> list[float]:
    return [float(len(text)), 1.0, 0.0, 0.5]


class FakeBackend:
    """Lifecycle of a booted HTTP client, answering healthchecks with health_status."""

    client_type = "fake"
    health_status = 200
    health_error: Exception | None = None
    booted = False
    closed = False

    def get_client_type(self) -> str:
        return self.client_type

    async def boot(self, transport=None) -> None:
        self.booted = True

    async def close(self) -> None:
        self.closed = True

    async def do_healthcheck(self) -> httpx.Response:
        if self.health_error:
            raise self.health_error
        return httpx.Response(self.health_status)


class FakeSource(FakeBackend):
    """In-memory document source."""

    def __init__(self, documents: list[Document] | None = None):
        self.documents = list(documents or [])
        self.fail = False
        self.calls = 0

    def get_engine_name(self) -> str:
        return "fake"

    async def do_list_documents(self) -> list[Document]:
        self.calls += 1
        if self.fail:
            raise DocumentSourceError("source down", status_code=503, transient=True)
        return [doc.model_copy() for doc in self.documents]


class FakeEmbedClient(FakeBackend):
    """Embeds deterministically. Texts containing a marker in failures raise the mapped error."""

    def __init__(self, dimension: int = DIMENSION):
        self.dimension = dimension
        self.calls: list[list[str]] = []
        self.failures: dict[str, EmbeddingProviderError] = {}
        self.delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def do_embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            for marker, error in self.failures.items():
                if any(marker in text for text in texts):
                    raise error
            return [make_vector(text)[: self.dimension] + [0.0] * (self.dimension - DIMENSION) for text in texts]
        finally:
            self.in_flight -= 1


class FakeVectorClient(FakeBackend):
    """Dict-backed vector store that behaves like an id-keyed index."""

    def __init__(self, dimension: int = DIMENSION, metric: str = "cosine", ids_are_doc_ids: bool = True):
        self.dimension = dimension
        self.metric = metric
        self.ids_are_doc_ids = ids_are_doc_ids
        self.vectors: dict[str, VectorRecord] = {}
        self.upsert_calls: list[list[str]] = []
        self.delete_calls: list[list[str]] = []
        self.query_calls: list[int] = []
        self.info_calls = 0
        self.fail_upsert = False
        self.fail_delete = False
        self.fail_info = False
        self.matches: list[QueryMatch] = []

    def get_engine_name(self) -> str:
        return "fake"

    def get_index_name(self) -> str:
        return "test-index"

    def ids_are_document_ids(self) -> bool:
        return self.ids_are_doc_ids

    async def do_fetch_index_info(self) -> IndexMetadata:
        self.info_calls += 1
        if self.fail_info:
            raise VectorStoreError("index unreachable", transient=True)
        return IndexMetadata(name="test-index", dimension=self.dimension, metric=self.metric, record_count=len(self.vectors))

    async def do_upsert(self, records: list[VectorRecord], expected_dimension: int | None = None) -> MutationResult:
        self.upsert_calls.append([record.id for record in records])
        if self.fail_upsert:
            raise VectorStoreError("upsert rejected", status_code=500, transient=True)
        for record in records:
            self.vectors[record.id] = record
        return MutationResult(requested=len(records), batches=1)

    async def do_delete_by_ids(self, ids: list[str]) -> MutationResult:
        self.delete_calls.append(list(ids))
        if self.fail_delete:
            raise VectorStoreError("delete rejected", status_code=500, transient=True)
        for doc_id in ids:
            self.vectors.pop(doc_id, None)
        return MutationResult(requested=len(ids), batches=1)

    async def do_query(self, vector: list[float], top_k: int) -> list[QueryMatch]:
        self.query_calls.append(top_k)
        return list(self.matches[:top_k])


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("vector_sync_bridge.tests"))


@pytest.fixture
def sync_config() -> SyncConfig:
    return SyncConfig(collection_id="test", embed_backoff_base=0.0, embed_backoff_max=0.0, embed_concurrency=3)


@pytest.fixture
def query_config() -> QueryConfig:
    return QueryConfig(default_top_k=3, overfetch_factor=3, max_candidates=50)


@pytest.fixture
def state_store(helper_config) -> SyncStateStoreMemory:
    return SyncStateStoreMemory(helper_config=helper_config)
