from fastapi import APIRouter, Depends, HTTPException, Request

from server.dependencies.auth import verify_api_key
from shared.errors import ConfigurationError, SyncAbortedError
from shared.models.sync import SyncSummary

router = APIRouter(prefix="/sync", tags=["sync"])


@router.post("")
async def run_sync(
    request: Request,
    _: None = Depends(verify_api_key),
) -> SyncSummary:
    """Run one sync pass and wait for its summary.

    A pass that is already running for the collection is awaited first.
    Item-level failures are part of the summary and still return 200.
    """
    reconciler = request.app.state.reconciler
    try:
        return await reconciler.do_sync()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except SyncAbortedError as e:
        raise HTTPException(status_code=503, detail=str(e))
