# app/routers/session_routes.py
from fastapi import APIRouter, Depends, Query, Request

from app.config import settings
from app.models.session import Ack, SessionPayload, SessionReadResponse
from app.services.session_store import SessionStore

router = APIRouter(prefix="/sessions", tags=["sessions"])


def get_store(request: Request) -> SessionStore:
    """Store bound to the caller's owner token (header), else the process identity."""
    store: SessionStore = request.app.state.session_store
    owner = request.headers.get(settings.OWNER_HEADER)
    return store.for_owner(owner) if owner else store


def _text(data) -> str:
    return data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data


@router.get("/{sid}", response_model=SessionReadResponse)
async def read_session(sid: str, store: SessionStore = Depends(get_store)):
    # Blocks until the lock is ours, broken, or given up on (empty data)
    data = await store.read(sid)
    return SessionReadResponse(id=sid, data=_text(data), owner=store.owner, backend=store.backend_name)


@router.put("/{sid}", response_model=Ack)
async def write_session(sid: str, payload: SessionPayload, store: SessionStore = Depends(get_store)):
    return Ack(ok=await store.write(sid, payload.data))


@router.delete("/{sid}", response_model=Ack)
async def destroy_session(sid: str, store: SessionStore = Depends(get_store)):
    return Ack(ok=await store.destroy(sid))


@router.post("/gc", response_model=Ack)
async def collect_sessions(
    max_lifetime: int = Query(settings.SESSION_LIFETIME, ge=0, description="Accepted for compatibility; mongo uses stored expiry"),
    store: SessionStore = Depends(get_store),
):
    return Ack(ok=await store.gc(max_lifetime))
