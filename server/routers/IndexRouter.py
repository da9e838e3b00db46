from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from shared.errors import VectorStoreError
from shared.models.vector import IndexMetadata

router = APIRouter(prefix="/index", tags=["index"])


@router.get("")
async def describe_index(
    request: Request,
    _: None = Depends(verify_api_key),
) -> IndexMetadata:
    """Return dimension, metric and record count of the vector index."""
    vector_client = request.app.state.vector_client
    try:
        return await vector_client.do_fetch_index_info()
    except VectorStoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
