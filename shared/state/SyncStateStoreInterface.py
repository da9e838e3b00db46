import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from shared.helper.HelperConfig import HelperConfig
from shared.models.document import SyncRecord
from shared.models.sync import SyncSnapshot


class SyncStateStoreInterface(ABC):
    """Key-value persistence of the per-collection snapshot map<id, SyncRecord>.

    Commits are read-modify-write operations serialized by one lock per
    collection, so two sync passes over the same collection never interleave
    their writes. A commit is the only write path.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self._commit_locks: dict[str, asyncio.Lock] = {}

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_engine_name(self) -> str:
        """
        Returns the name of the storage engine. E.g. "file"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    def get_commit_lock(self, collection: str) -> asyncio.Lock:
        """
        Returns the lock that serializes commits for a collection.
        """
        if collection not in self._commit_locks:
            self._commit_locks[collection] = asyncio.Lock()
        return self._commit_locks[collection]

    ##########################################
    ############### STORAGE ##################
    ##########################################

    @abstractmethod
    async def _read(self, collection: str) -> SyncSnapshot | None:
        """
        Reads the persisted snapshot, or None if the collection was never committed.
        """
        pass

    @abstractmethod
    async def _write(self, snapshot: SyncSnapshot) -> None:
        """
        Persists the snapshot in one write. Must either fully succeed or leave the previous snapshot intact.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_load(self, collection: str) -> dict[str, SyncRecord]:
        """Load the snapshot of a collection.

        Args:
            collection (str): Identity of the document collection.

        Returns:
            dict[str, SyncRecord]: Records keyed by document id. Empty if nothing was synced yet.
        """
        snapshot = await self._read(collection)
        return dict(snapshot.records) if snapshot else {}

    async def do_commit(
        self,
        collection: str,
        upserts: list[SyncRecord],
        removals: list[str],
    ) -> dict[str, SyncRecord]:
        """Apply synced records and removed ids to the snapshot in one logical write.

        Args:
            collection (str): Identity of the document collection.
            upserts (list[SyncRecord]): Records of documents whose vectors were written.
            removals (list[str]): Ids whose vectors were deleted.

        Returns:
            dict[str, SyncRecord]: The snapshot after the commit.
        """
        async with self.get_commit_lock(collection):
            snapshot = await self._read(collection) or SyncSnapshot(collection=collection)
            records = dict(snapshot.records)
            for record in upserts:
                records[record.id] = record
            for doc_id in removals:
                records.pop(doc_id, None)
            new_snapshot = SyncSnapshot(
                collection=collection,
                records=records,
                updated_at=datetime.now(timezone.utc),
            )
            await self._write(new_snapshot)
            self.logging.debug(
                "Committed snapshot for '%s': %d set, %d removed, %d total.",
                collection, len(upserts), len(removals), len(records),
            )
            return dict(records)
