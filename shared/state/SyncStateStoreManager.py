from shared.errors import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.state.SyncStateStoreInterface import SyncStateStoreInterface


class SyncStateStoreManager:
    """
    Manager class to handle the sync state store based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.store = self._initialize_store()

    def _get_engine_from_env(self) -> str:
        """
        Reads the state store engine from ENV configuration. Defaults to "File".
        """
        engine = self.helper_config.get_string_val("STATE_ENGINE", default="file")
        return engine.strip().lower().capitalize()

    def _initialize_store(self) -> SyncStateStoreInterface:
        """
        Initializes the state store based on the engine specified in the configuration.

        Raises:
            ConfigurationError: If the engine is unknown.
        """
        engine = self._get_engine_from_env()
        className = f"SyncStateStore{engine}"
        try:
            module = __import__(
                f"shared.state.{engine.lower()}.{className}",
                fromlist=[className],
            )
            store_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported state store engine specified: '{engine}'. Error: {e}")

        store = store_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated sync state store for engine: %s", engine)
        return store

    def get_store(self) -> SyncStateStoreInterface:
        return self.store
