from pydantic import BaseModel, Field


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required for a env setting.

    Attributes:
        env_key (str): The key/name of the environment variable to read.
        val_type (str): The expected type of the environment variable's value. Supported types are "string", "number", "bool", and "list".
        default (str | int | bool | list | None): An optional default value if the environment variable is not set. If None, the variable is required and an error will be raised if it is not set.
    """

    env_key: str
    val_type: str
    default: str | int | float | bool | list | None = None


class SyncConfig(BaseModel):
    """
    Settings injected into the Reconciler and the EmbeddingOrchestrator.

    Attributes:
        collection_id (str): Identity of the synced document collection. Keys the snapshot and the commit lock.
        embed_dimension (int | None): Expected vector dimension. None means "take it from the index".
        embed_metric (str): Distance metric the index must be configured with.
        embed_max_chars (int): Character limit of a single embedding input. Longer texts are truncated before sending.
        embed_concurrency (int): Size of the embedding worker pool.
        embed_max_attempts (int): Attempts per item for transient provider errors (first try included).
        embed_backoff_base (float): Seconds to wait before the first retry, doubled per attempt.
        embed_backoff_max (float): Upper bound for a single backoff wait.
        embed_call_timeout (float): Timeout in seconds for a single provider call.
        content_preview_chars (int): Characters of the embedded text stored as "content" metadata on each vector.
    """

    collection_id: str
    embed_dimension: int | None = None
    embed_metric: str = "cosine"
    embed_max_chars: int = Field(default=2048, ge=1)
    embed_concurrency: int = Field(default=5, ge=1)
    embed_max_attempts: int = Field(default=3, ge=1)
    embed_backoff_base: float = Field(default=0.5, ge=0)
    embed_backoff_max: float = Field(default=8.0, ge=0)
    embed_call_timeout: float = Field(default=30.0, gt=0)
    content_preview_chars: int = Field(default=1000, ge=0)


class QueryConfig(BaseModel):
    """
    Settings injected into the QueryService.

    Attributes:
        default_top_k (int): Result count used when the caller does not pass one.
        default_min_score (float | None): Score threshold used when the caller does not pass one. None disables filtering.
        overfetch_factor (int): Candidate multiplier applied when a score threshold is active.
        max_candidates (int): Hard cap for the candidate count sent to the vector store.
    """

    default_top_k: int = Field(default=3, ge=1)
    default_min_score: float | None = None
    overfetch_factor: int = Field(default=3, ge=1)
    max_candidates: int = Field(default=50, ge=1)
