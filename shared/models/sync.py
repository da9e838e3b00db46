"""Pydantic models describing a sync pass."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from shared.models.document import Document, SyncRecord


class ReconcilerState(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    EMBEDDING = "embedding"
    DELETING = "deleting"
    UPSERTING = "upserting"
    COMMITTING = "committing"
    ABORTED = "aborted"


class ChangeSet(BaseModel):
    """Partition of the current documents relative to the last snapshot.

    added, updated, unchanged and deleted are disjoint and together cover
    snapshot ids ∪ current ids. missing_content and duplicate_ids are flags
    on top of that partition, not groups of their own.
    """

    added: list[Document] = []
    updated: list[Document] = []
    unchanged: list[Document] = []
    deleted: list[str] = []
    fingerprints: dict[str, str] = {}
    missing_content: list[str] = []
    duplicate_ids: list[str] = []

    def added_ids(self) -> list[str]:
        return [doc.id for doc in self.added]

    def updated_ids(self) -> list[str]:
        return [doc.id for doc in self.updated]

    def unchanged_ids(self) -> list[str]:
        return [doc.id for doc in self.unchanged]

    def has_changes(self) -> bool:
        return bool(self.added or self.updated or self.deleted)


class SyncSummary(BaseModel):
    """Result of a sync pass, returned to callers and the HTTP API.

    added/updated/deleted only list ids whose mutation succeeded and was
    committed. failed lists every id that will be retried on the next pass.
    """

    collection: str
    state: ReconcilerState = ReconcilerState.IDLE
    added: list[str] = []
    updated: list[str] = []
    deleted: list[str] = []
    unchanged: list[str] = []
    failed: list[str] = []
    missing_content: list[str] = []
    errors: list[str] = []
    embed_calls: int = 0
    upserted: int = 0
    started_at: datetime | None = None
    finished_at: datetime | None = None


class SyncSnapshot(BaseModel):
    """Persisted form of the snapshot of one document collection."""

    collection: str
    records: dict[str, SyncRecord] = {}
    updated_at: datetime | None = None
