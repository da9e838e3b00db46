from shared.errors import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface

class VectorStoreClientManager:
    """
    Manager class to handle the vector store client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the vector store engine from ENV configuration.

        Returns:
            str: The name of the vector store engine.

        Raises:
            ConfigurationError: If no vector store engine is specified in the configuration.
        """
        engine = self.helper_config.get_string_val("VECTOR_ENGINE")
        if not engine:
            raise ConfigurationError("No vector store engine specified in configuration.")

        #lowercase all and uppcercase first letter for better comparison and display
        engine = engine.strip().lower()
        engine = engine.capitalize()
        return engine

    def _initialize_client(self) -> VectorStoreClientInterface:
        """
        Initializes the vector store client based on the engine specified in the configuration.

        Returns:
            VectorStoreClientInterface: An instance of the configured vector store client.

        Raises:
            ConfigurationError: If the engine is unknown or its client could not be instantiated.
        """
        engine = self._get_engine_from_env()
        className = f"VectorStoreClient{engine}"
        # try to import the class from shared.clients.vector.{engine}
        try:
            module = __import__(
                f"shared.clients.vector.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported vector store engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated vector store client for engine: {engine}")
        return client

    def get_client(self) -> VectorStoreClientInterface:
        """
        Returns the instantiated vector store client.

        Returns:
            VectorStoreClientInterface: The vector store client instance.
        """
        return self.client
