import asyncio

import pytest

from conftest import FakeEmbedClient
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from shared.errors import EmbeddingProviderError
from shared.models.config import SyncConfig
from shared.models.document import Document
from shared.models.vector import EmbedFailure, EmbedFailureKind, EmbedSuccess


def _orchestrator(helper_config, client, **overrides) -> EmbeddingOrchestrator:
    settings = {"collection_id": "test", "embed_backoff_base": 0.0, "embed_backoff_max": 0.0}
    settings.update(overrides)
    return EmbeddingOrchestrator(helper_config=helper_config, embed_client=client, sync_config=SyncConfig(**settings))


def test_results_keep_input_order(helper_config):
    client = FakeEmbedClient()
    orchestrator = _orchestrator(helper_config, client)

    results = asyncio.run(orchestrator.do_embed(["a", "bb", "ccc"]))

    assert [result.index for result in results] == [0, 1, 2]
    assert all(isinstance(result, EmbedSuccess) for result in results)
    assert [result.vector[0] for result in results] == [1.0, 2.0, 3.0]
    assert len(client.calls) == 3


def test_failures_are_isolated_per_item(helper_config):
    client = FakeEmbedClient()
    client.failures["bad"] = EmbeddingProviderError("rejected", status_code=400)
    orchestrator = _orchestrator(helper_config, client)

    results = asyncio.run(orchestrator.do_embed(["good", "bad", "fine"]))

    assert isinstance(results[0], EmbedSuccess)
    assert isinstance(results[1], EmbedFailure)
    assert results[1].kind == EmbedFailureKind.PERMANENT
    assert results[1].attempts == 1
    assert isinstance(results[2], EmbedSuccess)


def test_transient_errors_are_retried_until_success(helper_config):
    client = FakeEmbedClient()
    orchestrator = _orchestrator(helper_config, client, embed_max_attempts=3)
    original = client.do_embed
    attempts = {"count": 0}

    async def flaky(texts):
        attempts["count"] += 1
        if attempts["count"] < 3:
            raise EmbeddingProviderError("overloaded", status_code=429, transient=True)
        return await original(texts)

    client.do_embed = flaky

    results = asyncio.run(orchestrator.do_embed(["text"]))

    assert isinstance(results[0], EmbedSuccess)
    assert attempts["count"] == 3
    assert orchestrator.provider_calls == 3


def test_transient_errors_give_up_after_max_attempts(helper_config):
    client = FakeEmbedClient()
    client.failures["text"] = EmbeddingProviderError("bad gateway", status_code=502, transient=True)
    orchestrator = _orchestrator(helper_config, client, embed_max_attempts=3)

    result = asyncio.run(orchestrator.do_embed(["text"]))[0]

    assert isinstance(result, EmbedFailure)
    assert result.kind == EmbedFailureKind.TRANSIENT
    assert result.attempts == 3
    assert len(client.calls) == 3


def test_empty_text_is_invalid_without_provider_call(helper_config):
    client = FakeEmbedClient()
    orchestrator = _orchestrator(helper_config, client)

    results = asyncio.run(orchestrator.do_embed(["", "   "]))

    assert [result.kind for result in results] == [EmbedFailureKind.INVALID_INPUT] * 2
    assert client.calls == []


def test_dimension_mismatch_is_reported(helper_config):
    client = FakeEmbedClient(dimension=3)
    orchestrator = _orchestrator(helper_config, client, embed_dimension=4)

    result = asyncio.run(orchestrator.do_embed(["text"]))[0]

    assert isinstance(result, EmbedFailure)
    assert result.kind == EmbedFailureKind.DIMENSION_MISMATCH


def test_slow_calls_time_out_as_transient(helper_config):
    client = FakeEmbedClient()
    client.delay = 1.0
    orchestrator = _orchestrator(helper_config, client, embed_call_timeout=0.01, embed_max_attempts=1)

    result = asyncio.run(orchestrator.do_embed(["text"]))[0]

    assert isinstance(result, EmbedFailure)
    assert result.kind == EmbedFailureKind.TRANSIENT


def test_concurrency_is_bounded(helper_config):
    client = FakeEmbedClient()
    client.delay = 0.01
    orchestrator = _orchestrator(helper_config, client, embed_concurrency=2)

    asyncio.run(orchestrator.do_embed([f"text {i}" for i in range(8)]))

    assert client.max_in_flight == 2


def test_build_embed_text_joins_and_truncates(helper_config):
    orchestrator = _orchestrator(helper_config, FakeEmbedClient(), embed_max_chars=10)

    assert orchestrator.build_embed_text(Document(id="1", title="Hi", body="there")) == "Hi\n\nthere"
    assert orchestrator.build_embed_text(Document(id="1", title="", body="  body  ")) == "body"
    assert len(orchestrator.build_embed_text(Document(id="1", title="T", body="x" * 50))) == 10


def test_embed_one_raises_on_failure(helper_config):
    client = FakeEmbedClient()
    client.failures["boom"] = EmbeddingProviderError("invalid model", status_code=404)
    orchestrator = _orchestrator(helper_config, client)

    assert asyncio.run(orchestrator.do_embed_one("ok")) == [2.0, 1.0, 0.0, 0.5]
    with pytest.raises(EmbeddingProviderError):
        asyncio.run(orchestrator.do_embed_one("boom"))


def test_long_inputs_are_cut_before_sending(helper_config):
    client = FakeEmbedClient()
    orchestrator = _orchestrator(helper_config, client, embed_max_chars=16)

    result = asyncio.run(orchestrator.do_embed(["x" * 100]))[0]

    assert isinstance(result, EmbedSuccess)
    assert client.calls == [["x" * 16]]


def test_malformed_vector_fails_only_that_item(helper_config):
    client = FakeEmbedClient()
    original = client.do_embed

    async def malformed(texts):
        if "bad" in texts[0]:
            return [[None, 1.0, 0.0, 0.5]]
        return await original(texts)

    client.do_embed = malformed
    orchestrator = _orchestrator(helper_config, client)

    results = asyncio.run(orchestrator.do_embed(["good", "bad", "fine"]))

    assert isinstance(results[0], EmbedSuccess)
    assert isinstance(results[1], EmbedFailure)
    assert results[1].kind == EmbedFailureKind.PERMANENT
    assert results[1].attempts == 1
    assert isinstance(results[2], EmbedSuccess)


def test_empty_provider_response_is_a_permanent_failure(helper_config):
    client = FakeEmbedClient()

    async def empty(texts):
        return []

    client.do_embed = empty
    orchestrator = _orchestrator(helper_config, client)

    result = asyncio.run(orchestrator.do_embed(["text"]))[0]

    assert isinstance(result, EmbedFailure)
    assert result.kind == EmbedFailureKind.PERMANENT
