"""Pydantic models exchanged with the embedding provider and the vector store.

The client adapters translate every backend-specific JSON shape into these
models, so services never branch on provider quirks.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field


class VectorRecord(BaseModel):
    """A single vector written to the index. The id is the source document id."""

    id: str
    values: list[float]
    metadata: dict[str, Any] = {}


class QueryMatch(BaseModel):
    """A nearest-neighbour hit. Higher score means more similar."""

    id: str
    score: float
    metadata: dict[str, Any] = {}


class IndexMetadata(BaseModel):
    """Configuration and size of the remote index."""

    name: str
    dimension: int
    metric: str
    record_count: int | None = None


class MutationResult(BaseModel):
    """Outcome of an upsert or delete call.

    Attributes:
        requested:    Number of ids or records sent.
        mutation_ids: Backend mutation/operation identifiers, if the backend returns any.
        batches:      Number of HTTP requests the call was split into.
    """

    requested: int
    mutation_ids: list[str] = []
    batches: int = 0


class EmbedFailureKind(str, Enum):
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    DIMENSION_MISMATCH = "dimension_mismatch"
    INVALID_INPUT = "invalid_input"


class EmbedSuccess(BaseModel):
    status: Literal["ok"] = "ok"
    index: int
    vector: list[float]


class EmbedFailure(BaseModel):
    status: Literal["failed"] = "failed"
    index: int
    reason: str
    kind: EmbedFailureKind
    attempts: int = 0


EmbedResult = Annotated[Union[EmbedSuccess, EmbedFailure], Field(discriminator="status")]
