"""Change detection.

Compares the current documents of a source against the last committed
snapshot and partitions them into added, updated, unchanged and deleted.
Pure functions only: no I/O and no logging, so the same inputs always
produce the same ChangeSet.
"""

import hashlib
import json

from shared.models.document import Document, SyncRecord
from shared.models.sync import ChangeSet


def compute_fingerprint(document: Document) -> str:
    """Hash the content-defining fields of a document.

    Title, body, last_modified and version are encoded as canonical JSON and
    hashed with SHA-256. Metadata is excluded, it does not change the vector.
    A body of None hashes differently from an empty body.

    Args:
        document (Document): The document to fingerprint.

    Returns:
        str: Hex digest, stable across runs and processes.
    """
    canonical = json.dumps(
        [
            document.title,
            document.body,
            document.last_modified.isoformat() if document.last_modified else None,
            document.version,
        ],
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def diff_documents(current: list[Document], snapshot: dict[str, SyncRecord]) -> ChangeSet:
    """Partition current documents relative to the snapshot.

    Args:
        current (list[Document]): Documents as listed by the source.
        snapshot (dict[str, SyncRecord]): Last committed records keyed by id.

    Returns:
        ChangeSet: Disjoint added/updated/unchanged/deleted groups covering
            snapshot ids and current ids, plus the missing_content and
            duplicate_ids flags.
    """
    by_id: dict[str, Document] = {}
    duplicates: set[str] = set()
    for doc in current:
        if doc.id in by_id:
            duplicates.add(doc.id)
        # last occurrence wins
        by_id[doc.id] = doc

    change_set = ChangeSet(duplicate_ids=sorted(duplicates))
    for doc_id in sorted(by_id):
        doc = by_id[doc_id]
        fingerprint = compute_fingerprint(doc)
        change_set.fingerprints[doc_id] = fingerprint
        if not doc.has_content():
            change_set.missing_content.append(doc_id)

        record = snapshot.get(doc_id)
        if record is None:
            change_set.added.append(doc)
        elif record.fingerprint != fingerprint:
            change_set.updated.append(doc)
        else:
            change_set.unchanged.append(doc)

    change_set.deleted = sorted(doc_id for doc_id in snapshot if doc_id not in by_id)
    return change_set
