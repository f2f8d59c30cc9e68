from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, Union

from motor.motor_asyncio import AsyncIOMotorClient

from app.config import Settings
from app.core.identity import process_identity
from app.dal.session_dal import MongoSessionBackend
from app.db.mongodb import MongoConnection, parse_save_path
from app.errors import ConfigurationError
from app.services.memory_backend import InMemorySessionBackend

log = logging.getLogger("session.store")

Payload = Union[str, bytes]


class SessionBackend(Protocol):
    name: str

    def with_owner(self, owner: str) -> "SessionBackend": ...

    async def has_connection(self) -> bool: ...

    async def read(self, sid: str) -> Payload: ...

    async def write(self, sid: str, data: Payload) -> bool: ...

    async def destroy(self, sid: str) -> bool: ...

    async def gc(self, max_lifetime: int) -> bool: ...


class SessionStore:
    """
    Routes session operations to the Mongo backend while it is usable and to
    the fallback backend otherwise. Once the Mongo connection degrades it
    stays on the fallback for the life of the store.
    """

    def __init__(self, *, mongo: Optional[MongoSessionBackend], fallback: SessionBackend, owner: str):
        self._mongo = mongo
        self._fallback = fallback
        self.owner = owner

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        fallback: Optional[SessionBackend] = None,
        owner: Optional[str] = None,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
        **backend_kwargs: Any,
    ) -> "SessionStore":
        owner = owner or process_identity()
        fallback = fallback or InMemorySessionBackend(lifetime=settings.SESSION_LIFETIME)

        try:
            save_path = parse_save_path(settings.SESSION_SAVE_PATH)
        except ConfigurationError as e:
            log.error("%s Using fallback session backend.", e)
            save_path = None

        if save_path is None:
            log.info("session save path is not a mongo URI, using fallback backend")
            return cls(mongo=None, fallback=fallback, owner=owner)

        conn = MongoConnection(
            save_path,
            collection=settings.SESSION_COLLECTION,
            timeout_ms=settings.MONGO_TIMEOUT_MS,
            client_factory=client_factory,
        )
        mongo = MongoSessionBackend(
            conn,
            owner=owner,
            lifetime=settings.SESSION_LIFETIME,
            break_after=settings.SESSION_BREAK_AFTER,
            fail_after=settings.SESSION_FAIL_AFTER,
            retry_delay=settings.SESSION_RETRY_DELAY,
            cleaning_factor=settings.SESSION_CLEANING_FACTOR,
            **backend_kwargs,
        )
        return cls(mongo=mongo, fallback=fallback, owner=owner)

    def for_owner(self, owner: str) -> "SessionStore":
        """A view on the same connection that reads and writes as ``owner``."""
        mongo = self._mongo.with_owner(owner) if self._mongo else None
        return SessionStore(mongo=mongo, fallback=self._fallback.with_owner(owner), owner=owner)

    @property
    def use_mongo(self) -> bool:
        return self._mongo is not None and not self._mongo.conn.disabled

    @property
    def backend_name(self) -> str:
        return "mongo" if self.use_mongo else "fallback"

    async def has_connection(self) -> bool:
        if self.use_mongo:
            return await self._mongo.has_connection()
        return await self._fallback.has_connection()

    async def _active(self) -> SessionBackend:
        if self.use_mongo and await self._mongo.has_connection():
            return self._mongo
        return self._fallback

    async def read(self, sid: str) -> Payload:
        return await (await self._active()).read(sid)

    async def write(self, sid: str, data: Payload) -> bool:
        return await (await self._active()).write(sid, data)

    async def destroy(self, sid: str) -> bool:
        return await (await self._active()).destroy(sid)

    async def gc(self, max_lifetime: int) -> bool:
        return await (await self._active()).gc(max_lifetime)

    def close(self) -> None:
        if self._mongo is not None:
            self._mongo.conn.close()
