# app/config.py
from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Session save path. A mongodb:// (or legacy mongo://) URI with a database
    # segment selects the Mongo store; anything else uses the fallback backend.
    SESSION_SAVE_PATH: str = "mongodb://localhost:27017/sessions"
    SESSION_COLLECTION: str = "sessions"
    SESSION_LIFETIME: int = Field(default=3600, ge=1)  # seconds, refreshed on every lock acquisition

    # Locking
    SESSION_BREAK_AFTER: int = Field(default=15, ge=2)  # contention count at which a lock is presumed abandoned
    SESSION_FAIL_AFTER: int = Field(default=20, ge=1)  # acquisition attempts before a read gives up
    SESSION_RETRY_DELAY: float = Field(default=1.0, ge=0)

    # Garbage collection: 0 = never, 1 = every call, N = roughly 1 in N calls
    SESSION_CLEANING_FACTOR: int = Field(default=50, ge=0)

    MONGO_TIMEOUT_MS: int = 10000

    # Callers identify the lock holder with this header; absent -> process identity
    OWNER_HEADER: str = "x-session-owner"

    # Service metadata
    SERVICE_NAME: str = "session-service"
    PORT: int = 8040
    ENV: str = "local"
    LOG_LEVEL: str = "INFO"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

settings = Settings()  # type: ignore
