from services.vector_sync.EmbeddingOrchestrator import EmbeddingOrchestrator
from shared.clients.vector.VectorStoreClientInterface import VectorStoreClientInterface
from shared.errors import QueryValidationError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import QueryConfig
from shared.models.search import SearchRequest, SearchResponse, SearchResultItem
from shared.models.vector import QueryMatch


class QueryService:
    """Handles semantic search queries: embed -> search -> filter -> rank."""

    def __init__(
        self,
        helper_config: HelperConfig,
        vector_client: VectorStoreClientInterface,
        embedding_orchestrator: EmbeddingOrchestrator,
        query_config: QueryConfig,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._vector_client = vector_client
        self._orchestrator = embedding_orchestrator
        self._config = query_config

    ##########################################
    ################ HELPERS #################
    ##########################################

    def _get_candidate_count(self, top_k: int, min_score: float | None) -> int:
        """
        Number of matches requested from the store. Over-fetches when a threshold may drop results.
        """
        if min_score is None:
            return top_k
        return max(top_k, min(top_k * self._config.overfetch_factor, self._config.max_candidates))

    def _resolve_doc_id(self, match: QueryMatch) -> str | None:
        doc_id = match.metadata.get("doc_id")
        if doc_id:
            return str(doc_id)
        if self._vector_client.ids_are_document_ids() and match.id:
            return match.id
        return None

    ##########################################
    ############### CORE #####################
    ##########################################

    async def do_search(self, text: str, top_k: int | None = None, min_score: float | None = None) -> list[QueryMatch]:
        """Embed a query and return the top_k most similar documents.

        Args:
            text (str): Natural language query.
            top_k (int | None): Maximum number of results. Defaults to the configured value.
            min_score (float | None): Only matches scoring strictly above this value are kept.
                Defaults to the configured threshold, None disables filtering.

        Returns:
            list[QueryMatch]: At most top_k matches sorted by descending score. Each
                match carries the resolved document id in metadata["doc_id"].

        Raises:
            QueryValidationError: If the query is empty or top_k is below 1.
            EmbeddingProviderError: If the query cannot be embedded.
            VectorStoreError: If the index cannot be queried.
        """
        if not text or not text.strip():
            raise QueryValidationError("Query text must not be empty.")
        top_k = self._config.default_top_k if top_k is None else top_k
        if top_k < 1:
            raise QueryValidationError(f"top_k must be at least 1, got {top_k}.")
        if min_score is None:
            min_score = self._config.default_min_score

        vector = await self._orchestrator.do_embed_one(text.strip())
        candidates = await self._vector_client.do_query(vector, self._get_candidate_count(top_k, min_score))

        matches: list[QueryMatch] = []
        for match in candidates:
            if min_score is not None and match.score <= min_score:
                continue
            doc_id = self._resolve_doc_id(match)
            if doc_id is None:
                self.logging.warning("Dropping match '%s' without a document id.", match.id)
                continue
            matches.append(match.model_copy(update={"metadata": {**match.metadata, "doc_id": doc_id}}))

        matches.sort(key=lambda m: (-m.score, m.id))
        self.logging.debug("Query returned %d candidate(s), %d kept.", len(candidates), min(len(matches), top_k))
        return matches[:top_k]

    async def do_query(self, request: SearchRequest) -> SearchResponse:
        """Run a search request and wrap the matches into the API response envelope."""
        self.logging.info("QueryService.do_query: query='%s', top_k=%s", request.query, request.top_k)
        matches = await self.do_search(request.query, top_k=request.top_k, min_score=request.min_score)
        items = [SearchResultItem.from_match(match) for match in matches]
        return SearchResponse(query=request.query, results=items, total=len(items))
