from fastapi import APIRouter, Request

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health(request: Request) -> dict:
    """Liveness probe, no authentication."""
    return {"status": "ok", "version": request.app.version}
