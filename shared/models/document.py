"""Pydantic models for source documents and their persisted sync state.

Hierarchy:
  Document    - generic, source-independent document contract.
  SyncRecord  - snapshot entry written after a document was synced successfully.
"""

from datetime import datetime

from pydantic import BaseModel


class Document(BaseModel):
    """Generic, source-independent document representation.

    Owned by the document source and read-only to the sync engine.
    Identity is the id.

    A body of None means the source could not find any content for the
    document. This is different from an empty body, which is valid content.
    """

    id: str
    title: str = ""
    body: str | None = ""
    last_modified: datetime | None = None
    version: int = 0
    metadata: dict[str, str] = {}

    def has_content(self) -> bool:
        return self.body is not None


class SyncRecord(BaseModel):
    """Snapshot entry for a document whose vector was written successfully."""

    id: str
    fingerprint: str
    title: str = ""
    last_modified: datetime | None = None
    version: int = 0
