from shared.helper.HelperConfig import HelperConfig
from shared.models.sync import SyncSnapshot
from shared.state.SyncStateStoreInterface import SyncStateStoreInterface


class SyncStateStoreMemory(SyncStateStoreInterface):
    """Process-local store. Snapshots are lost on restart, so every restart re-embeds everything."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._snapshots: dict[str, SyncSnapshot] = {}

    def _get_engine_name(self) -> str:
        return "Memory"

    async def _read(self, collection: str) -> SyncSnapshot | None:
        snapshot = self._snapshots.get(collection)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def _write(self, snapshot: SyncSnapshot) -> None:
        self._snapshots[snapshot.collection] = snapshot.model_copy(deep=True)
