from shared.errors import ConfigurationError
from shared.helper.HelperConfig import HelperConfig
from shared.clients.source.DocumentSourceInterface import DocumentSourceInterface

class DocumentSourceManager:
    """
    Manager class to handle the document source client based on configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the document source engine from ENV configuration.

        Returns:
            str: The name of the document source engine.

        Raises:
            ConfigurationError: If no document source engine is specified in the configuration.
        """
        engine = self.helper_config.get_string_val("SOURCE_ENGINE")
        if not engine:
            raise ConfigurationError("No document source engine specified in configuration.")

        #lowercase all and uppcercase first letter for better comparison and display
        engine = engine.strip().lower()
        engine = engine.capitalize()
        return engine

    def _initialize_client(self) -> DocumentSourceInterface:
        """
        Initializes the document source client based on the engine specified in the configuration.

        Returns:
            DocumentSourceInterface: An instance of the configured document source client.

        Raises:
            ConfigurationError: If the engine is unknown or its client could not be instantiated.
        """
        engine = self._get_engine_from_env()
        className = f"DocumentSource{engine}"
        # try to import the class from shared.clients.source.{engine}
        try:
            module = __import__(
                f"shared.clients.source.{engine.lower()}.{className}",
                fromlist=[className],
            )
            client_class = getattr(module, className)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(f"Unsupported document source engine specified: '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug(f"Instantiated document source client for engine: {engine}")
        return client

    def get_client(self) -> DocumentSourceInterface:
        """
        Returns the instantiated document source client.

        Returns:
            DocumentSourceInterface: The document source client instance.
        """
        return self.client
