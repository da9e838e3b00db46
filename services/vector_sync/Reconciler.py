"""Reconciliation of a document collection against the vector index.

One pass walks DETECTING → EMBEDDING → DELETING → UPSERTING → COMMITTING
and returns to IDLE. Embedding runs before any mutation so a configuration
problem (e.g. a wrong vector dimension) aborts the pass before the index or
the snapshot are touched. The snapshot is only committed for ids whose
vectors were actually written or removed, so every failed id is picked up
again by the next pass.
"""

import asyncio
from datetime import datetime, timezone

from services.vector_sync.ChangeDetector import diff_documents
from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface
from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.errors import ConfigurationError, DocumentSourceError, SyncAbortedError, VectorStoreError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import SyncConfig
from shared.models.document import Document, SyncRecord
from shared.models.sync import ChangeSet, ReconcilerState, SyncSummary
from shared.models.vector import EmbedFailure, EmbedFailureKind, VectorRecord
from shared.state.SyncStateStoreInterface import SyncStateStoreInterface


class Reconciler:
    """Runs sync passes for one document collection."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_source: DocumentSourceInterface,
        embedding_orchestrator: EmbeddingOrchestrator,
        vector_client: VectorStoreClientInterface,
        state_store: SyncStateStoreInterface,
        sync_config: SyncConfig,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._source = document_source
        self._orchestrator = embedding_orchestrator
        self._vector_client = vector_client
        self._store = state_store
        self._config = sync_config

        self.state = ReconcilerState.IDLE
        self.abort_reason: str | None = None
        self._index_dimension: int | None = None
        self._sync_lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_collection(self) -> str:
        return self._config.collection_id

    def _set_state(self, state: ReconcilerState) -> None:
        self.logging.debug("Reconciler '%s': %s → %s", self.get_collection(), self.state.value, state.value)
        self.state = state

    ##########################################
    ############### CORE SYNC ################
    ##########################################

    async def do_sync(self) -> SyncSummary:
        """Run one sync pass. Concurrent calls for the same collection are serialized.

        Returns:
            SyncSummary: Ids that were added, updated, deleted, left unchanged or failed.

        Raises:
            ConfigurationError: If the index does not match the configured dimension or metric,
                or an embedding has the wrong dimension. Nothing is mutated in that case.
            SyncAbortedError: If the document source or the vector index cannot be reached.
        """
        async with self._sync_lock:
            summary = SyncSummary(collection=self.get_collection(), started_at=datetime.now(timezone.utc))
            self.abort_reason = None
            try:
                await self._run_pass(summary)
            except (ConfigurationError, SyncAbortedError) as e:
                self.abort_reason = str(e)
                self._set_state(ReconcilerState.ABORTED)
                self.logging.error("Sync of '%s' aborted: %s", self.get_collection(), e)
                raise
            finally:
                if self.state != ReconcilerState.ABORTED:
                    self._set_state(ReconcilerState.IDLE)
                summary.state = self.state
                summary.finished_at = datetime.now(timezone.utc)
            return summary

    async def _run_pass(self, summary: SyncSummary) -> None:
        await self._validate_index()

        ################ DETECTING ##################
        self._set_state(ReconcilerState.DETECTING)
        try:
            documents = await self._source.do_list_documents()
        except DocumentSourceError as e:
            raise SyncAbortedError(f"Document source '{self._source.get_engine_name()}' unavailable: {e}") from e
        snapshot = await self._store.do_load(self.get_collection())
        change_set = diff_documents(documents, snapshot)
        summary.unchanged = change_set.unchanged_ids()
        if change_set.duplicate_ids:
            self.logging.warning("Source returned duplicate ids, last occurrence used: %s", ", ".join(change_set.duplicate_ids))
        self.logging.info(
            "Detected changes for '%s': %d added, %d updated, %d deleted, %d unchanged.",
            self.get_collection(), len(change_set.added), len(change_set.updated),
            len(change_set.deleted), len(change_set.unchanged),
        )
        if not change_set.has_changes():
            return

        ################ EMBEDDING ##################
        self._set_state(ReconcilerState.EMBEDDING)
        vectors = await self._embed_changes(change_set, summary)

        ################ DELETING ##################
        removals: list[str] = []
        if change_set.deleted:
            self._set_state(ReconcilerState.DELETING)
            try:
                await self._vector_client.do_delete_by_ids(change_set.deleted)
                removals = list(change_set.deleted)
            except VectorStoreError as e:
                self.logging.error("Deleting %d vectors failed: %s", len(change_set.deleted), e)
                summary.failed.extend(change_set.deleted)
                summary.errors.extend(f"{doc_id}: delete failed: {e}" for doc_id in change_set.deleted)

        ################ UPSERTING ##################
        upserted: list[Document] = []
        if vectors:
            self._set_state(ReconcilerState.UPSERTING)
            candidates = [doc for doc in change_set.added + change_set.updated if doc.id in vectors]
            records = [self._build_vector_record(doc, vectors[doc.id]) for doc in candidates]
            try:
                await self._vector_client.do_upsert(records, expected_dimension=self._index_dimension)
                upserted = candidates
                summary.upserted = len(records)
            except VectorStoreError as e:
                self.logging.error("Upserting %d vectors failed: %s", len(records), e)
                summary.failed.extend(doc.id for doc in candidates)
                summary.errors.extend(f"{doc.id}: upsert failed: {e}" for doc in candidates)

        ################ COMMITTING ##################
        if upserted or removals:
            self._set_state(ReconcilerState.COMMITTING)
            sync_records = [self._build_sync_record(doc, change_set.fingerprints[doc.id]) for doc in upserted]
            await self._store.do_commit(self.get_collection(), sync_records, removals)

        upserted_ids = {doc.id for doc in upserted}
        summary.added = [doc_id for doc_id in change_set.added_ids() if doc_id in upserted_ids]
        summary.updated = [doc_id for doc_id in change_set.updated_ids() if doc_id in upserted_ids]
        summary.deleted = removals
        summary.failed = sorted(set(summary.failed))
        self.logging.info(
            "Sync of '%s' done: %d added, %d updated, %d deleted, %d failed, %d embed calls.",
            self.get_collection(), len(summary.added), len(summary.updated),
            len(summary.deleted), len(summary.failed), summary.embed_calls,
        )

    ##########################################
    ############### HELPERS ##################
    ##########################################

    async def _validate_index(self) -> None:
        """Compare the remote index with the configuration, once per Reconciler."""
        if self._index_dimension is not None:
            return
        try:
            info = await self._vector_client.do_fetch_index_info()
        except VectorStoreError as e:
            raise SyncAbortedError(f"Vector index '{self._vector_client.get_index_name()}' unavailable: {e}") from e

        if self._config.embed_dimension is not None and self._config.embed_dimension != info.dimension:
            raise ConfigurationError(
                f"Index '{info.name}' has dimension {info.dimension}, configured dimension is {self._config.embed_dimension}."
            )
        if info.metric.lower() != self._config.embed_metric.lower():
            raise ConfigurationError(
                f"Index '{info.name}' uses metric '{info.metric}', configured metric is '{self._config.embed_metric}'."
            )
        self._index_dimension = info.dimension
        self._orchestrator.expected_dimension = info.dimension

    async def _embed_changes(self, change_set: ChangeSet, summary: SyncSummary) -> dict[str, list[float]]:
        """Embed added and updated documents. Returns vectors keyed by document id."""
        to_embed: list[Document] = []
        for doc in change_set.added + change_set.updated:
            if doc.has_content():
                to_embed.append(doc)
            else:
                summary.failed.append(doc.id)
                summary.missing_content.append(doc.id)
                summary.errors.append(f"{doc.id}: no content found")

        calls_before = self._orchestrator.provider_calls
        results = await self._orchestrator.do_embed([self._orchestrator.build_embed_text(doc) for doc in to_embed])
        summary.embed_calls = self._orchestrator.provider_calls - calls_before

        vectors: dict[str, list[float]] = {}
        for result in results:
            doc = to_embed[result.index]
            if isinstance(result, EmbedFailure):
                if result.kind == EmbedFailureKind.DIMENSION_MISMATCH:
                    raise ConfigurationError(f"Embedding for '{doc.id}' does not fit the index: {result.reason}")
                summary.failed.append(doc.id)
                summary.errors.append(f"{doc.id}: embedding failed ({result.kind.value}): {result.reason}")
            else:
                vectors[doc.id] = result.vector
        return vectors

    def _build_vector_record(self, document: Document, vector: list[float]) -> VectorRecord:
        text = self._orchestrator.build_embed_text(document)
        metadata: dict = dict(document.metadata)
        metadata.update({
            "doc_id": document.id,
            "title": document.title,
            "content": text[: self._config.content_preview_chars],
            "version": document.version,
        })
        if document.last_modified:
            metadata["last_updated"] = document.last_modified.isoformat()
        return VectorRecord(id=document.id, values=vector, metadata=metadata)

    @staticmethod
    def _build_sync_record(document: Document, fingerprint: str) -> SyncRecord:
        return SyncRecord(
            id=document.id,
            fingerprint=fingerprint,
            title=document.title,
            last_modified=document.last_modified,
            version=document.version,
        )
