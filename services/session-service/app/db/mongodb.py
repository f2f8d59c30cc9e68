# services/session-service/app/db/mongodb.py
from __future__ import annotations

import asyncio
import logging
import zlib
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlparse, unquote

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING

from app.errors import ConfigurationError, StoreUnavailable

log = logging.getLogger("session.mongo")

MONGO_SCHEMES = ("mongodb://", "mongodb+srv://", "mongo://")
LEGACY_SCHEME = "mongo://"


@dataclass(frozen=True)
class SavePath:
    uri: str        # driver-ready URI
    database: str


def parse_save_path(save_path: str) -> Optional[SavePath]:
    """
    Returns None when the save path is not a Mongo URI (use the fallback backend).
    Raises ConfigurationError for a Mongo URI without a database segment.
    """
    save_path = (save_path or "").strip()
    if not save_path.startswith(MONGO_SCHEMES):
        return None

    uri = save_path
    if uri.startswith(LEGACY_SCHEME):
        uri = "mongodb://" + uri[len(LEGACY_SCHEME):]

    database = unquote(urlparse(uri).path.rsplit("/", 1)[-1])
    if not database:
        raise ConfigurationError("Mongo server string must specify db name.")
    return SavePath(uri=uri, database=database)


class MongoConnection:
    """
    Lazily connected handle on the sessions collection.

    Any failure while connecting, selecting or ensuring the ``expires`` index
    disables the connection for the life of this instance; callers then route
    to the fallback backend. There is no re-probe.
    """

    def __init__(
        self,
        save_path: SavePath,
        *,
        collection: str = "sessions",
        timeout_ms: int = 10000,
        client_factory: Callable[..., Any] = AsyncIOMotorClient,
    ):
        self.save_path = save_path
        self.collection_name = collection
        self.timeout_ms = timeout_ms
        self.disabled = False
        self._client_factory = client_factory
        self._client = None
        self._coll: Optional[AsyncIOMotorCollection] = None
        # connect and degrade run one at a time
        self._connect_lock = asyncio.Lock()

    @property
    def collection(self) -> AsyncIOMotorCollection:
        if self._coll is None:
            raise StoreUnavailable("not connected")
        return self._coll

    async def connect(self) -> AsyncIOMotorCollection:
        try:
            if self._client is None:
                self._client = self._client_factory(
                    self.save_path.uri,
                    serverSelectionTimeoutMS=self.timeout_ms,
                    connectTimeoutMS=self.timeout_ms,
                    appname="sessions_%08x" % zlib.crc32(self.save_path.uri.encode()),
                    tz_aware=True,
                )
            await self._client.admin.command("ping")
            db = self._client[self.save_path.database]
            coll = db[self.collection_name]
            await coll.create_index([("expires", ASCENDING)])
        except Exception as e:
            raise StoreUnavailable(str(e)) from e
        if self.disabled:
            raise StoreUnavailable("connection disabled")
        self._coll = coll
        return coll

    async def has_connection(self) -> bool:
        if self.disabled:
            return False
        if self._coll is not None:
            return True
        async with self._connect_lock:
            if self.disabled:
                return False
            if self._coll is not None:
                return True
            try:
                await self.connect()
                log.info("connected db=%s collection=%s", self.save_path.database, self.collection_name)
                return True
            except StoreUnavailable:
                log.exception("mongo unavailable, falling back for the rest of this store's life")
                self.disabled = True
                self.close()
                return False

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
        self._client = None
        self._coll = None
