from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.errors import ClientRequestError, EmbeddingProviderError, is_transient_status

from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # model and embedding config
        self.embed_model = helper_config.get_string_val(f"{self.get_client_type().upper()}_MODEL", default=self._get_default_model())

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "embed"
        """
        return "embed"

    def _get_error_class(self) -> type[ClientRequestError]:
        return EmbeddingProviderError

    @abstractmethod
    def _get_default_model(self) -> str:
        """
        Returns the model used when EMBED_MODEL is not set.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def get_endpoint_embedding(self) -> str:
        """
        Returns the endpoint path for embedding requests.

        Returns:
            str: The endpoint path for embedding requests (e.g. "/api/embed")
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_embed_payload(self, texts: list[str]) -> dict:
        """Build the backend-specific request body for an embedding request.

        Args:
            texts (list[str]): The texts to embed.

        Returns:
            dict: JSON-serialisable request body (e.g. {"model": "...", "input": [...]}).
        """
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a raw embedding API response.

        Response format differs by backend:
        - Cloudflare Workers AI: {"success": true, "result": {"data": [[...]]}}
        - Ollama /api/embed: {"embeddings": [[...], [...]]}, already ordered
        - OpenAI-compatible: {"data": [{"embedding": [...], "index": 0}]}, needs sorting

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the input texts.

        Raises:
            ValueError: If the response format is invalid or embeddings are empty.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Send an embedding request and return the extracted vectors.

        Normalises the input to a list, builds the backend-specific payload via
        get_embed_payload(), sends the request, validates the status, and extracts
        the vectors via extract_embeddings_from_response().

        Args:
            texts (list[str] | str): One or more texts to embed.

        Returns:
            list[list[float]]: Embedding vectors in the same order as the inputs.

        Raises:
            EmbeddingProviderError: If the request fails (transient for timeouts, 429 and 5xx)
                or the response does not contain one valid vector per input (permanent).
        """
        texts = [texts] if isinstance(texts, str) else texts
        body = self.get_embed_payload(texts)
        response = await self.do_request(method="POST", endpoint=self.get_endpoint_embedding(), json=body)
        if response.status_code != 200:
            self.logging.error(
                "Embedding request to '%s' failed: status %d, body: %s",
                self.get_engine_name(),
                response.status_code,
                response.text[:200],
            )
            raise EmbeddingProviderError(
                "Embedding request failed with status %d." % response.status_code,
                status_code=response.status_code,
                transient=is_transient_status(response.status_code),
            )
        try:
            vectors = self.extract_embeddings_from_response(response.json())
        except ValueError as e:
            raise EmbeddingProviderError(f"Malformed embedding response from '{self.get_engine_name()}': {e}") from e
        if len(vectors) != len(texts):
            raise EmbeddingProviderError(
                f"Embedding response from '{self.get_engine_name()}' contains {len(vectors)} vectors for {len(texts)} inputs."
            )
        return vectors

    async def do_fetch_embedding_vector_size(self) -> int:
        """
        Determine the output dimension of the configured model by embedding a probe text.

        Returns:
            int: The number of dimensions produced by the embedding model.

        Raises:
            EmbeddingProviderError: If the probe request fails.
        """
        vectors = await self.do_embed(["dimension probe"])
        return len(vectors[0])
