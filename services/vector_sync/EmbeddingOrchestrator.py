"""Embedding orchestration.

Turns texts into vectors through the configured embedding client with a
bounded worker pool. Every input gets its own provider call and its own
result, so one bad document never fails the others.
"""

import asyncio

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.errors import EmbeddingProviderError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import SyncConfig
from shared.models.document import Document
from shared.models.vector import EmbedFailure, EmbedFailureKind, EmbedResult, EmbedSuccess


class EmbeddingOrchestrator:
    """Bounded, retrying fan-out of embedding calls."""

    def __init__(
        self,
        helper_config: HelperConfig,
        embed_client: EmbedClientInterface,
        sync_config: SyncConfig,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self._config = sync_config
        self.expected_dimension: int | None = sync_config.embed_dimension
        self.provider_calls = 0

    ##########################################
    ############# TEXT BUILDER ###############
    ##########################################

    def build_embed_text(self, document: Document) -> str:
        """Build the embedding input of a document: title, blank line, body.

        The result is truncated to embed_max_chars, the input limit of the model.
        """
        text = f"{document.title}\n\n{document.body or ''}".strip()
        return text[: self._config.embed_max_chars]

    def _get_backoff(self, attempt: int) -> float:
        return min(self._config.embed_backoff_base * 2 ** (attempt - 1), self._config.embed_backoff_max)

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str]) -> list[EmbedResult]:
        """Embed every text independently. Each text is cut to embed_max_chars before sending.

        Args:
            texts (list[str]): Inputs, e.g. prepared with build_embed_text() or a search query.

        Returns:
            list[EmbedResult]: One EmbedSuccess or EmbedFailure per input, in input order.
        """
        if not texts:
            return []
        sem = asyncio.Semaphore(self._config.embed_concurrency)
        results = await asyncio.gather(*[self._embed_item(index, text, sem) for index, text in enumerate(texts)])
        failed = sum(1 for result in results if isinstance(result, EmbedFailure))
        if failed:
            self.logging.warning("Embedding finished with %d of %d failures.", failed, len(texts))
        return list(results)

    async def do_embed_one(self, text: str) -> list[float]:
        """Embed a single text, e.g. a search query.

        Raises:
            EmbeddingProviderError: If the text could not be embedded.
        """
        result = (await self.do_embed([text]))[0]
        if isinstance(result, EmbedFailure):
            raise EmbeddingProviderError(
                f"Embedding failed ({result.kind.value}) after {result.attempts} attempt(s): {result.reason}",
                transient=result.kind == EmbedFailureKind.TRANSIENT,
            )
        return result.vector

    async def _embed_item(self, index: int, text: str, sem: asyncio.Semaphore) -> EmbedResult:
        text = text[: self._config.embed_max_chars]
        if not text or not text.strip():
            return EmbedFailure(index=index, reason="empty input text", kind=EmbedFailureKind.INVALID_INPUT)

        async with sem:
            attempt = 0
            while True:
                attempt += 1
                try:
                    self.provider_calls += 1
                    vectors = await asyncio.wait_for(
                        self._embed_client.do_embed([text]),
                        timeout=self._config.embed_call_timeout,
                    )
                except asyncio.TimeoutError:
                    error = EmbeddingProviderError(
                        f"provider call timed out after {self._config.embed_call_timeout}s", transient=True
                    )
                except EmbeddingProviderError as e:
                    error = e
                else:
                    try:
                        success = EmbedSuccess(index=index, vector=vectors[0])
                    except (IndexError, TypeError, ValueError) as e:
                        return EmbedFailure(
                            index=index,
                            reason=f"malformed provider response: {e}",
                            kind=EmbedFailureKind.PERMANENT,
                            attempts=attempt,
                        )
                    if self.expected_dimension is not None and len(success.vector) != self.expected_dimension:
                        return EmbedFailure(
                            index=index,
                            reason=f"vector has dimension {len(success.vector)}, expected {self.expected_dimension}",
                            kind=EmbedFailureKind.DIMENSION_MISMATCH,
                            attempts=attempt,
                        )
                    return success

                if not error.transient:
                    return EmbedFailure(index=index, reason=str(error), kind=EmbedFailureKind.PERMANENT, attempts=attempt)
                if attempt >= self._config.embed_max_attempts:
                    return EmbedFailure(index=index, reason=str(error), kind=EmbedFailureKind.TRANSIENT, attempts=attempt)

                delay = self._get_backoff(attempt)
                self.logging.debug("Transient embedding error for item %d (attempt %d), retrying in %.2fs: %s", index, attempt, delay, error)
                await asyncio.sleep(delay)
