"""Base class of every HTTP backend client (embedding provider, vector store, document source).

Settings are read from env keys named ``<TYPE>_<ENGINE>_<KEY>``, e.g.
``VECTOR_CLOUDFLARE_ACCOUNT_ID``. Subclasses declare their keys in
_get_required_config() and are validated on construction, so a missing
credential fails at startup rather than during the first sync.
"""

from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles

from shared.errors import ClientRequestError, ConfigurationError, is_transient_status
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every key of _get_required_config() once.

        Raises:
            ConfigurationError: If a required key is missing or malformed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the client type in lowercase. E.g. "vector"
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """
        Returns the engine name in lowercase. E.g. "cloudflare"
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    def _get_error_class(self) -> type[ClientRequestError]:
        """
        Returns the exception type raised for failed requests of this client type.
        """
        return ClientRequestError

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns the env settings of the engine. A default of None marks a key as required.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads an engine setting, e.g. raw_key "API_KEY" of the Cloudflare vector client reads VECTOR_CLOUDFLARE_API_KEY.

        Args:
            raw_key (str): Key name without the type and engine prefix.
            default (Any): Value used if the key is not set. None makes the key required.
            val_type (str): One of "string", "number", "bool", "list".

        Raises:
            ConfigurationError: If the key is required but not set, or the type is unsupported.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ConfigurationError(f"Unsupported config value type '{val_type}' for env key '{key}'.")
        return readers[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the headers that authenticate against the backend. Empty if no credentials are configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the base URL of the backend, e.g. "https://api.cloudflare.com/client/v4".
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    def _build_url(self, endpoint: str) -> str:
        endpoint = endpoint.strip()
        path = "/" + endpoint.lstrip("/") if endpoint else ""
        return f"{self._get_base_url().rstrip('/')}{path}"

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """Send a request to the healthcheck endpoint and return the raw response."""
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client.

        Args:
            transport: Optional custom transport, e.g. httpx.MockTransport in tests.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send a request to the backend. At most one body argument is used.

        Args:
            method: HTTP method.
            content: Raw body. The Content-Type must come via additional_headers.
            data: Form-encoded body.
            files: Multipart upload.
            json: JSON body.
            params: URL query parameters.
            endpoint: Path below the base URL, may carry its own query string.
            additional_headers: Headers merged over the auth header.
            raise_on_error: Raise for non-2xx responses instead of returning them.

        Returns:
            httpx.Response: The raw response.

        Raises:
            ClientRequestError: Subclass from _get_error_class(). Timeouts, transport
                errors, 429 and 5xx are flagged transient.
        """
        error_class = self._get_error_class()
        if self._client is None:
            raise error_class("HTTP client not initialised. Call boot() before making requests.")

        url = self._build_url(endpoint)
        headers = {**self._get_auth_header(), **(additional_headers or {})}
        body: dict = {}
        for name, value in (("content", content), ("data", data), ("files", files), ("json", json)):
            if value is not None:
                body[name] = value
                break

        try:
            response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        except httpx.TimeoutException as e:
            raise error_class(f"Request to {url} timed out: {e}", transient=True) from e
        except httpx.TransportError as e:
            raise error_class(f"Request to {url} failed: {e}", transient=True) from e

        if raise_on_error and not response.is_success:
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, response.text[:500])
            raise error_class(
                f"Request to {url} failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
                transient=is_transient_status(response.status_code),
            )
        return response
