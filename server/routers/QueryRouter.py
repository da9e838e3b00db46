from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from shared.errors import ClientRequestError, QueryValidationError
from shared.models.search import SearchRequest, SearchResponse

router = APIRouter(prefix="/query", tags=["query"])


@router.post("")
async def query_documents(
    request: Request,
    body: SearchRequest,
    _: None = Depends(verify_api_key),
) -> SearchResponse:
    """Execute a semantic search query against the vector index.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (SearchRequest): JSON body with query string, top_k and min_score.
        _ (None): Auth dependency result (unused).

    Returns:
        SearchResponse: Matching documents, best first. Empty if nothing scored high enough.
    """
    query_service = request.app.state.query_service
    try:
        return await query_service.do_query(body)
    except QueryValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except ClientRequestError as e:
        request.app.state.logging.error("Query failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
