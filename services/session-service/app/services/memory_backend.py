from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Dict, Union

Payload = Union[str, bytes]


@dataclass
class SessionEntry:
    data: Payload
    expires_at: float
    updated_at: float


class InMemorySessionBackend:
    """
    Default backend used when Mongo is not configured or has gone away.
    Single-process only and without locking.
    """

    name = "fallback"

    def __init__(self, lifetime: int, clock: Callable[[], float] = time.time) -> None:
        self.lifetime = lifetime
        self._clock = clock
        self._store: Dict[str, SessionEntry] = {}

    def with_owner(self, owner: str) -> "InMemorySessionBackend":
        return self

    async def has_connection(self) -> bool:
        return True

    async def read(self, sid: str) -> Payload:
        rec = self._store.get(sid)
        if not rec:
            return ""
        if rec.expires_at < self._clock():
            self._store.pop(sid, None)
            return ""
        return rec.data

    async def write(self, sid: str, data: Payload) -> bool:
        now = self._clock()
        self._store[sid] = SessionEntry(data=data, expires_at=now + self.lifetime, updated_at=now)
        return True

    async def destroy(self, sid: str) -> bool:
        self._store.pop(sid, None)
        return True

    async def gc(self, max_lifetime: int) -> bool:
        cutoff = self._clock() - max_lifetime
        for sid in [k for k, rec in self._store.items() if rec.updated_at < cutoff]:
            self._store.pop(sid, None)
        return True
