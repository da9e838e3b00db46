"""Pydantic models for search requests and responses."""

from pydantic import BaseModel, Field

from shared.models.vector import QueryMatch


class SearchRequest(BaseModel):
    """Incoming natural language search query from a frontend."""

    query: str
    top_k: int | None = Field(default=None, ge=1)
    min_score: float | None = None


class SearchResultItem(BaseModel):
    """A single document result returned from the vector index."""

    doc_id: str
    title: str
    score: float
    content: str | None = None
    metadata: dict = {}

    @classmethod
    def from_match(cls, match: QueryMatch) -> "SearchResultItem":
        metadata = dict(match.metadata)
        return cls(
            doc_id=str(metadata.pop("doc_id", match.id)),
            title=str(metadata.pop("title", "")),
            score=match.score,
            content=metadata.pop("content", None),
            metadata=metadata,
        )


class SearchResponse(BaseModel):
    """Success envelope returned after a search. An empty result list is not an error."""

    query: str
    results: list[SearchResultItem]
    total: int
