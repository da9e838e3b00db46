import asyncio
import os
import re
import tempfile

from shared.errors import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.sync import SyncSnapshot
from shared.state.SyncStateStoreInterface import SyncStateStoreInterface

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class SyncStateStoreFile(SyncStateStoreInterface):
    """Stores one JSON file per collection below STATE_FILE_DIR."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        default_dir = os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "state")
        self._directory = helper_config.get_string_val("STATE_FILE_DIR", default=default_dir)
        try:
            os.makedirs(self._directory, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"State directory '{self._directory}' is not usable: {e}")

    ##########################################
    ################ GETTER ##################
    ##########################################

    def _get_engine_name(self) -> str:
        return "File"

    def get_path(self, collection: str) -> str:
        """
        Returns the snapshot file path of a collection. Unsafe characters are replaced.
        """
        safe_name = _UNSAFE_CHARS.sub("_", collection) or "default"
        return os.path.join(self._directory, f"{safe_name}.json")

    ##########################################
    ############### STORAGE ##################
    ##########################################

    async def _read(self, collection: str) -> SyncSnapshot | None:
        return await asyncio.to_thread(self._read_file, collection)

    async def _write(self, snapshot: SyncSnapshot) -> None:
        await asyncio.to_thread(self._write_file, snapshot)

    def _read_file(self, collection: str) -> SyncSnapshot | None:
        path = self.get_path(collection)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as f:
            return SyncSnapshot.model_validate_json(f.read())

    def _write_file(self, snapshot: SyncSnapshot) -> None:
        path = self.get_path(snapshot.collection)
        # write next to the target so os.replace stays on one filesystem
        fd, tmp_path = tempfile.mkstemp(dir=self._directory, prefix=".snapshot-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
