"""Central configuration helper for the vector sync bridge."""

import logging
import os

from shared.errors import ConfigurationError
from shared.models.config import QueryConfig, SyncConfig


class HelperConfig:
    """Central configuration helper. Reads all settings from environment variables."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Read a string environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (str | None): Fallback value if the variable is not set.

        Returns:
            str: The resolved value.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        val = os.getenv(key) or None  # empty string → None
        if val is None and default is None:
            raise ConfigurationError(f"Environment variable '{key}' is not set.")
        return val.strip() if val is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read a numeric environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (float | int | None): Fallback value if the variable is not set.

        Returns:
            float | int: The resolved numeric value.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided.
            ConfigurationError: If the value cannot be parsed as a number.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ConfigurationError(f"Environment variable '{key}' is not set.")
            return default
        raw = raw.strip()
        try:
            return int(raw) if "." not in raw else float(raw)
        except ValueError:
            raise ConfigurationError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """Read a boolean environment variable.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (bool | None): Fallback value if the variable is not set.

        Returns:
            bool: The resolved boolean value.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided.
        """
        key = key.upper()
        raw = os.getenv(key) or None
        if raw is None:
            if default is None:
                raise ConfigurationError(f"Environment variable '{key}' is not set.")
            return default
        return raw.strip().lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list[str] | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list environment variable, splitting by a separator.

        Args:
            key (str): Environment variable name (case-insensitive).
            default (list[str] | None): Fallback value if the variable is not set.
            separator (str): The delimiter to split the string into a list.
            element_type (type): The type to which each element should be cast.

        Returns:
            list: The resolved list of elements.

        Raises:
            ConfigurationError: If the variable is not set and no default is provided, or is malformed.
        """
        raw_val = os.getenv(key.upper()) or None
        if raw_val is None:
            if default is None:
                raise ConfigurationError(f"Environment variable '{key.upper()}' is not set.")
            return default
        raw_val = raw_val.strip()
        # make sure string is set in the following syntax: "[elem1,elem2,...]"
        if not raw_val.startswith("[") or not raw_val.endswith("]"):
            raise ConfigurationError(f"Environment variable '{key.upper()}' must be in the format '[elem1{separator}elem2{separator}...]'. Got: '{raw_val}'")
        elements = [v.strip() for v in raw_val[1:-1].split(separator) if v.strip()]
        if not elements:
            return []

        try:
            return [element_type(elem) for elem in elements]
        except ValueError as e:
            raise ConfigurationError(f"Environment variable '{key.upper()}' contains invalid elements: {e}. Type set to {element_type.__name__}. Got: '{raw_val}'")

    def get_logger(self) -> logging.Logger:
        """Return the application logger.

        Returns:
            logging.Logger: The configured logger instance.
        """
        return self._logger

    ##########################################
    ############# SERVICE CONFIG #############
    ##########################################

    def get_sync_config(self) -> SyncConfig:
        """Build the explicit sync settings handed to the Reconciler.

        Returns:
            SyncConfig: The resolved sync configuration.

        Raises:
            ConfigurationError: If a value is malformed or out of range.
        """
        dimension = self.get_number_val("EMBED_DIMENSION", default=0)
        try:
            return SyncConfig(
                collection_id=self.get_string_val("SYNC_COLLECTION", default="default"),
                embed_dimension=int(dimension) if dimension else None,
                embed_metric=self.get_string_val("EMBED_DISTANCE", default="cosine").lower(),
                embed_max_chars=int(self.get_number_val("EMBED_MODEL_MAX_CHARS", default=2048)),
                embed_concurrency=int(self.get_number_val("EMBED_CONCURRENCY", default=5)),
                embed_max_attempts=int(self.get_number_val("EMBED_MAX_ATTEMPTS", default=3)),
                embed_backoff_base=float(self.get_number_val("EMBED_BACKOFF_BASE", default=0.5)),
                embed_backoff_max=float(self.get_number_val("EMBED_BACKOFF_MAX", default=8.0)),
                embed_call_timeout=float(self.get_number_val("EMBED_CALL_TIMEOUT", default=30.0)),
                content_preview_chars=int(self.get_number_val("SYNC_CONTENT_PREVIEW_CHARS", default=1000)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid sync configuration: {e}")

    def get_query_config(self) -> QueryConfig:
        """Build the explicit query settings handed to the QueryService.

        Returns:
            QueryConfig: The resolved query configuration.

        Raises:
            ConfigurationError: If a value is malformed or out of range.
        """
        min_score_raw = self.get_string_val("QUERY_MIN_SCORE", default="")
        try:
            return QueryConfig(
                default_top_k=int(self.get_number_val("QUERY_TOP_K", default=3)),
                default_min_score=float(min_score_raw) if min_score_raw else None,
                overfetch_factor=int(self.get_number_val("QUERY_OVERFETCH_FACTOR", default=3)),
                max_candidates=int(self.get_number_val("QUERY_MAX_CANDIDATES", default=50)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid query configuration: {e}")
