# services/session-service/app/dal/session_dal.py
from __future__ import annotations

import asyncio
import copy
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from pymongo import ReturnDocument
from pymongo.errors import OperationFailure, PyMongoError

from app.core.retry import Sleep, retry_until_acquired
from app.db.mongodb import MongoConnection
from app.errors import CommandError, LockTimeout, OwnerStampError, StoreUnavailable
from app.models.session import SessionRecord

log = logging.getLogger("session.dal")

BREAK_AFTER = 15
FAIL_AFTER = 20

Payload = Union[str, bytes]

# driver errors plus the handle being closed under us
STORE_ERRORS = (PyMongoError, StoreUnavailable)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MongoSessionBackend:
    """
    Session records with a per-session advisory lock.

    read() increments ``lock`` atomically (upserting the record). A result of 1
    means the lock was free; exactly ``break_after`` means enough readers have
    piled up behind a holder that it is presumed dead and the lock is taken
    over. Anything else is contention and is retried. Only the stamped
    ``owner`` may write, and writing releases the lock.
    """

    name = "mongo"

    def __init__(
        self,
        conn: MongoConnection,
        *,
        owner: str,
        lifetime: int,
        break_after: int = BREAK_AFTER,
        fail_after: int = FAIL_AFTER,
        retry_delay: float = 1.0,
        cleaning_factor: int = 50,
        clock: Callable[[], datetime] = _now,
        rng: Optional[random.Random] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.conn = conn
        self.owner = owner
        self.lifetime = lifetime
        self.break_after = break_after
        self.fail_after = fail_after
        self.retry_delay = retry_delay
        self.cleaning_factor = cleaning_factor
        self._clock = clock
        self._rng = rng or random.Random()
        self._sleep = sleep

    def with_owner(self, owner: str) -> "MongoSessionBackend":
        """Same connection and policy, different lock holder."""
        other = copy.copy(self)
        other.owner = owner
        return other

    async def has_connection(self) -> bool:
        return await self.conn.has_connection()

    # ----------------- Lock protocol -----------------

    async def _increment(self, sid: str) -> SessionRecord:
        try:
            raw = await self.conn.collection.find_one_and_update(
                {"_id": sid},
                {"$inc": {"lock": 1}},
                projection={"lock": 1, "data": 1},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except OperationFailure as e:
            details = e.details or {}
            raise CommandError(details.get("errmsg") or str(e), e.code) from e
        except PyMongoError as e:
            raise CommandError(str(e)) from e
        if raw is None:
            raise CommandError("findAndModify returned no document")
        return SessionRecord.model_validate(raw)

    async def _try_acquire(self, sid: str) -> Optional[Payload]:
        doc = await self._increment(sid)
        if doc.lock != 1 and doc.lock != self.break_after:
            return None
        if doc.lock == self.break_after:
            log.warning("breaking stale lock sid=%s waiters=%d", sid, doc.lock)

        try:
            await self.conn.collection.update_one(
                {"_id": sid},
                {
                    "$set": {
                        "owner": self.owner,
                        "lock": 1,
                        "expires": self._clock() + timedelta(seconds=self.lifetime),
                    }
                },
            )
        except PyMongoError as e:
            raise OwnerStampError(str(e), getattr(e, "code", None)) from e
        return doc.data if doc.data is not None else ""

    # ----------------- Session handler -----------------

    async def read(self, sid: str) -> Payload:
        try:
            return await retry_until_acquired(
                lambda: self._try_acquire(sid),
                attempts=self.fail_after,
                delay=self.retry_delay,
                sleep=self._sleep,
            )
        except OwnerStampError as e:
            log.error("owner stamp failed sid=%s: %s (%s)", sid, e.message, e.code)
            return ""
        except CommandError as e:
            log.error("FindAndModify command failed: %s (%s)", e.message, e.code)
            return ""
        except LockTimeout as e:
            log.debug("sid=%s still locked after %d attempts, continuing with empty session", sid, e.attempts)
            return ""
        except StoreUnavailable as e:
            log.error("session store unavailable during read sid=%s: %s", sid, e)
            return ""

    async def write(self, sid: str, data: Payload) -> bool:
        # If we lost our lock on the session we must not overwrite it.
        try:
            res = await self.conn.collection.update_one(
                {"_id": sid, "owner": self.owner},
                {"$set": {"data": data, "lock": 0}},
            )
        except STORE_ERRORS:
            log.exception("write failed sid=%s", sid)
            return True
        if not res.matched_count:
            log.debug("write skipped sid=%s owner=%s: lock held by someone else", sid, self.owner)
        return True

    async def destroy(self, sid: str) -> bool:
        try:
            await self.conn.collection.delete_one({"_id": sid})
        except STORE_ERRORS:
            log.exception("destroy failed sid=%s", sid)
        return True

    async def gc(self, max_lifetime: int) -> bool:
        """max_lifetime is ignored: expiry comes from each record's ``expires``."""
        factor = self.cleaning_factor
        if factor <= 0:
            return True
        if factor == 1 or self._rng.randint(1, factor) == 1:
            try:
                res = await self.conn.collection.delete_many({"expires": {"$lt": self._clock()}})
            except STORE_ERRORS:
                log.exception("gc failed")
                return True
            log.info("gc removed=%d", res.deleted_count)
        return True
