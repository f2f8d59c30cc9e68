from fastapi import APIRouter, Request

from app.config import settings
from app.models.session import Readiness

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz():
    return {"status": "ok", "service": settings.SERVICE_NAME}


@router.get("/readyz", response_model=Readiness)
async def readyz(request: Request):
    store = request.app.state.session_store
    ready = await store.has_connection()
    return Readiness(ready=ready, backend=store.backend_name)
