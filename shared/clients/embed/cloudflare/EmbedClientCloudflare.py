from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class EmbedClientCloudflare(EmbedClientInterface):
    """Cloudflare Workers AI embedding client (default model bge-base-en-v1.5, 768 dimensions)."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.cloudflare.com/client/v4", val_type="string")
        self._account_id = self.get_config_val("ACCOUNT_ID", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Cloudflare"

    def _get_default_model(self) -> str:
        return "@cf/baai/bge-base-en-v1.5"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="ACCOUNT_ID", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._api_key}"}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/user/tokens/verify"

    def get_endpoint_embedding(self) -> str:
        return f"/accounts/{self._account_id}/ai/run/{self.embed_model}"

    ################ PAYLOAD BUILDER ##################
    def get_embed_payload(self, texts: list[str]) -> dict:
        return {"text": texts}

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def extract_embeddings_from_response(self, response_data: dict) -> list[list[float]]:
        """Extract embedding vectors from a Workers AI response.

        Workers AI answers HTTP 200 with success=false for some model errors,
        so the envelope flag is checked as well.

        Args:
            response_data (dict): The parsed JSON response body.

        Returns:
            list[list[float]]: Embedding vectors in input order.

        Raises:
            ValueError: If the envelope reports an error or holds no vectors.
        """
        if not response_data.get("success", False):
            errors = response_data.get("errors") or []
            message = errors[0].get("message") if errors and isinstance(errors[0], dict) else "unknown error"
            raise ValueError(f"Cloudflare reported an unsuccessful embedding run: {message}")
        data = (response_data.get("result") or {}).get("data")
        if not data or not data[0]:
            raise ValueError("Cloudflare response does not contain result.data embeddings.")
        return data
