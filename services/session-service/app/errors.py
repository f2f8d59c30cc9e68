# app/errors.py
from __future__ import annotations

from typing import Optional


class SessionStoreError(Exception):
    """Base class for session store failures. None of these reach HTTP callers."""


class ConfigurationError(SessionStoreError):
    """The save path names the Mongo store but is unusable (e.g. no database)."""


class StoreUnavailable(SessionStoreError):
    """Connect, database/collection select or index creation failed, or the
    connection was closed under an in-flight operation."""


class CommandError(SessionStoreError):
    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(f"{message} ({code or 0})")
        self.message = message
        self.code = code or 0


class OwnerStampError(CommandError):
    """The lock was won but recording ownership and expiry failed."""


class LockTimeout(SessionStoreError):
    def __init__(self, attempts: int):
        super().__init__(f"lock not acquired after {attempts} attempts")
        self.attempts = attempts
