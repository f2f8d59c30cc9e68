# app/models/session.py
from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field, ConfigDict


# --- DB model -----------------------------------------------------------------

class SessionRecord(BaseModel):
    """
    One document per session id in the ``sessions`` collection.

    lock == 0 means unlocked; a reader that increments it to 1 (or to the
    break-after threshold) holds it and stamps ``owner``. Only the owner's
    write lands, and it resets ``lock`` to 0.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    data: Optional[Union[str, bytes]] = None   # opaque payload
    lock: int = Field(default=0, ge=0)
    owner: Optional[str] = None
    expires: Optional[datetime] = None   # refreshed on lock acquisition, never on write


# --- API payloads ---------------------------------------------------------------

class SessionPayload(BaseModel):
    data: str = ""


class SessionReadResponse(BaseModel):
    id: str
    data: str
    owner: str                              # token to send back on write
    backend: Literal["mongo", "fallback"]


class Ack(BaseModel):
    ok: bool = True


class Readiness(BaseModel):
    ready: bool
    backend: Literal["mongo", "fallback"]
