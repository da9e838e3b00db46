"""Error taxonomy shared by clients and services.

Configuration errors are fatal and abort a sync before any mutation.
Client request errors carry a transient flag so callers can decide
whether a retry makes sense.
"""


class ConfigurationError(ValueError):
    """Missing or invalid configuration (credentials, dimension or metric mismatch)."""


class ClientRequestError(Exception):
    """A request against an external backend failed.

    Attributes:
        status_code (int | None): HTTP status of the failed response, None for transport errors.
        transient (bool): True if the failure may succeed on retry (timeouts, 5xx, 429).
    """

    def __init__(self, message: str, status_code: int | None = None, transient: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.transient = transient


class EmbeddingProviderError(ClientRequestError):
    """The embedding provider rejected a request or returned an unusable response."""


class VectorStoreError(ClientRequestError):
    """The vector store rejected a request, fully or for part of a batch."""


class DocumentSourceError(ClientRequestError):
    """The document source could not be listed."""


class SyncAbortedError(Exception):
    """A sync pass could not run at all (source or vector store unreachable)."""


class QueryValidationError(ValueError):
    """A search request is invalid (e.g. empty query text)."""


def is_transient_status(status_code: int) -> bool:
    """Returns True for HTTP statuses worth retrying (429 and 5xx)."""
    return status_code == 429 or status_code >= 500
