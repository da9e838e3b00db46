import asyncio
from datetime import datetime, timezone

import pytest

from conftest import FakeEmbedClient, FakeSource, FakeVectorClient
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from services.vector_sync.Reconciler import Reconciler
from shared.errors import ConfigurationError, EmbeddingProviderError, SyncAbortedError
from shared.models.config import SyncConfig
from shared.models.document import Document, SyncRecord
from shared.models.sync import ReconcilerState


def _doc(doc_id: str, body: str | None = None, **kwargs) -> Document:
    return Document(
        id=doc_id,
        title=kwargs.pop("title", f"Page {doc_id}"),
        body=f"Body of {doc_id}" if body is None and not kwargs.pop("missing", False) else body,
        last_modified=datetime(2024, 5, 1, tzinfo=timezone.utc),
        version=kwargs.pop("version", 1),
        **kwargs,
    )


class Harness:
    def __init__(self, helper_config, state_store, sync_config, documents, vector_client=None, embed_client=None):
        self.source = FakeSource(documents)
        self.embed_client = embed_client or FakeEmbedClient()
        self.vector_client = vector_client or FakeVectorClient()
        self.store = state_store
        self.reconciler = Reconciler(
            helper_config=helper_config,
            document_source=self.source,
            embedding_orchestrator=EmbeddingOrchestrator(
                helper_config=helper_config, embed_client=self.embed_client, sync_config=sync_config
            ),
            vector_client=self.vector_client,
            state_store=state_store,
            sync_config=sync_config,
        )

    def sync(self):
        return asyncio.run(self.reconciler.do_sync())

    def snapshot(self):
        return asyncio.run(self.store.do_load("test"))


@pytest.fixture
def make_harness(helper_config, state_store, sync_config):
    def factory(documents, **kwargs):
        return Harness(helper_config, state_store, sync_config, documents, **kwargs)
    return factory


def test_first_sync_adds_all_documents(make_harness):
    harness = make_harness([_doc("1"), _doc("2"), _doc("3")])

    summary = harness.sync()

    assert summary.added == ["1", "2", "3"]
    assert summary.failed == [] and summary.errors == []
    assert summary.embed_calls == 3
    assert summary.upserted == 3
    assert summary.state == ReconcilerState.IDLE
    assert set(harness.vector_client.vectors) == {"1", "2", "3"}
    assert set(harness.snapshot()) == {"1", "2", "3"}
    record = harness.vector_client.vectors["1"]
    assert record.metadata["doc_id"] == "1"
    assert record.metadata["title"] == "Page 1"
    assert record.metadata["content"] == "Page 1\n\nBody of 1"
    assert record.metadata["last_updated"] == "2024-05-01T00:00:00+00:00"


def test_resync_without_changes_does_nothing(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.sync()
    snapshot_before = harness.snapshot()
    embed_calls_before = len(harness.embed_client.calls)

    summary = harness.sync()

    assert summary.unchanged == ["1", "2"]
    assert summary.added == [] and summary.updated == [] and summary.deleted == []
    assert summary.embed_calls == 0
    assert len(harness.embed_client.calls) == embed_calls_before
    assert len(harness.vector_client.upsert_calls) == 1
    assert harness.vector_client.delete_calls == []
    assert harness.snapshot() == snapshot_before


def test_new_document_is_the_only_one_embedded(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.sync()
    harness.source.documents.append(_doc("3"))

    summary = harness.sync()

    assert summary.added == ["3"]
    assert summary.unchanged == ["1", "2"]
    assert summary.embed_calls == 1
    assert harness.vector_client.upsert_calls[-1] == ["3"]


def test_changed_document_is_updated(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.sync()
    harness.source.documents[0] = _doc("1", body="Rewritten", version=2)

    summary = harness.sync()

    assert summary.updated == ["1"]
    assert harness.vector_client.vectors["1"].metadata["version"] == 2
    assert harness.snapshot()["1"].version == 2


def test_removed_document_is_deleted(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.sync()
    harness.source.documents = [_doc("1")]

    summary = harness.sync()

    assert summary.deleted == ["2"]
    assert summary.embed_calls == 0
    assert harness.vector_client.delete_calls == [["2"]]
    assert "2" not in harness.vector_client.vectors
    assert set(harness.snapshot()) == {"1"}


def test_deleting_an_id_missing_from_the_index_succeeds(make_harness, state_store):
    harness = make_harness([_doc("1")])
    harness.sync()
    # snapshot knows a document whose vector was never written
    asyncio.run(state_store.do_commit("test", [SyncRecord(id="ghost", fingerprint="f", title="Ghost")], []))

    summary = harness.sync()

    assert summary.deleted == ["ghost"]
    assert summary.failed == [] and summary.errors == []
    assert harness.vector_client.delete_calls == [["ghost"]]
    assert set(harness.vector_client.vectors) == {"1"}
    assert set(harness.snapshot()) == {"1"}


def test_one_embedding_failure_does_not_block_the_others(make_harness):
    harness = make_harness([_doc("1"), _doc("2", body="broken body"), _doc("3")])
    harness.embed_client.failures["broken"] = EmbeddingProviderError("bad request", status_code=400)

    summary = harness.sync()

    assert summary.added == ["1", "3"]
    assert summary.failed == ["2"]
    assert len(summary.errors) == 1 and summary.errors[0].startswith("2:")
    assert set(harness.snapshot()) == {"1", "3"}

    # the failed document is retried on the next pass, the others are untouched
    harness.embed_client.failures.clear()
    embed_calls_before = len(harness.embed_client.calls)
    summary = harness.sync()

    assert summary.added == ["2"]
    assert summary.unchanged == ["1", "3"]
    assert len(harness.embed_client.calls) == embed_calls_before + 1


def test_malformed_vector_fails_only_that_document(make_harness):
    harness = make_harness([_doc("1"), _doc("2"), _doc("3")])
    original = harness.embed_client.do_embed

    async def malformed(texts):
        if any("Page 2" in text for text in texts):
            return [[None, 1.0, 0.0, 0.5]]
        return await original(texts)

    harness.embed_client.do_embed = malformed

    summary = harness.sync()

    assert summary.added == ["1", "3"]
    assert summary.failed == ["2"]
    assert summary.state == ReconcilerState.IDLE
    assert set(harness.vector_client.vectors) == {"1", "3"}
    assert set(harness.snapshot()) == {"1", "3"}


def test_upsert_failure_commits_nothing(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.vector_client.fail_upsert = True

    summary = harness.sync()

    assert summary.added == []
    assert summary.failed == ["1", "2"]
    assert summary.upserted == 0
    assert harness.snapshot() == {}

    harness.vector_client.fail_upsert = False
    summary = harness.sync()
    assert summary.added == ["1", "2"]


def test_delete_failure_keeps_upserts(make_harness):
    harness = make_harness([_doc("1"), _doc("2")])
    harness.sync()
    harness.vector_client.fail_delete = True
    harness.source.documents = [_doc("1", body="changed"), _doc("3")]

    summary = harness.sync()

    assert summary.updated == ["1"]
    assert summary.added == ["3"]
    assert summary.deleted == []
    assert summary.failed == ["2"]
    snapshot = harness.snapshot()
    assert set(snapshot) == {"1", "2", "3"}

    harness.vector_client.fail_delete = False
    summary = harness.sync()
    assert summary.deleted == ["2"]
    assert set(harness.snapshot()) == {"1", "3"}


def test_index_dimension_mismatch_aborts_before_mutation(helper_config, state_store):
    config = SyncConfig(collection_id="test", embed_dimension=8, embed_backoff_base=0.0)
    harness = Harness(helper_config, state_store, config, [_doc("1")])

    with pytest.raises(ConfigurationError):
        harness.sync()

    assert harness.reconciler.state == ReconcilerState.ABORTED
    assert harness.embed_client.calls == []
    assert harness.vector_client.upsert_calls == []
    assert harness.snapshot() == {}


def test_index_metric_mismatch_aborts(helper_config, state_store, sync_config):
    harness = Harness(helper_config, state_store, sync_config, [_doc("1")], vector_client=FakeVectorClient(metric="euclidean"))

    with pytest.raises(ConfigurationError):
        harness.sync()
    assert harness.vector_client.upsert_calls == []


def test_embedding_dimension_mismatch_aborts_before_mutation(make_harness):
    harness = make_harness([_doc("1"), _doc("2")], embed_client=FakeEmbedClient(dimension=3))

    with pytest.raises(ConfigurationError):
        harness.sync()

    assert harness.vector_client.upsert_calls == []
    assert harness.vector_client.delete_calls == []
    assert harness.snapshot() == {}


def test_document_without_content_is_reported_and_not_committed(make_harness):
    harness = make_harness([_doc("1"), _doc("2", missing=True)])

    summary = harness.sync()

    assert summary.added == ["1"]
    assert summary.missing_content == ["2"]
    assert summary.failed == ["2"]
    assert "2: no content found" in summary.errors
    assert set(harness.snapshot()) == {"1"}
    assert len(harness.embed_client.calls) == 1


def test_unreachable_source_aborts(make_harness):
    harness = make_harness([_doc("1")])
    harness.source.fail = True

    with pytest.raises(SyncAbortedError):
        harness.sync()

    assert harness.reconciler.state == ReconcilerState.ABORTED
    assert harness.reconciler.abort_reason
    assert harness.vector_client.upsert_calls == []


def test_unreachable_index_aborts(make_harness):
    harness = make_harness([_doc("1")])
    harness.vector_client.fail_info = True

    with pytest.raises(SyncAbortedError):
        harness.sync()
    assert harness.source.calls == 0


def test_index_is_validated_once(make_harness):
    harness = make_harness([_doc("1")])
    harness.sync()
    harness.sync()

    assert harness.vector_client.info_calls == 1


def test_concurrent_syncs_are_serialized(make_harness):
    harness = make_harness([_doc("1"), _doc("2"), _doc("3")])
    harness.embed_client.delay = 0.01

    async def run_both():
        return await asyncio.gather(harness.reconciler.do_sync(), harness.reconciler.do_sync())

    first, second = asyncio.run(run_both())

    assert first.added == ["1", "2", "3"]
    assert second.added == [] and second.unchanged == ["1", "2", "3"]
    assert len(harness.embed_client.calls) == 3
    assert len(harness.vector_client.upsert_calls) == 1
