from datetime import UTC, datetime
from pathlib import Path

from pydantic_settings import BaseSettings


def utcnow() -> datetime:
    """Return the current UTC time as a naive datetime.

    Keeps datetimes naive so they stay compatible with SQLite (which doesn't
    store tz info).
    """
    return datetime.now(UTC).replace(tzinfo=None)


class Settings(BaseSettings):
    app_name: str = "StudyDash"
    database_url: str = f"sqlite+aiosqlite:///{Path(__file__).resolve().parent.parent / 'data' / 'studydash.db'}"
    chat_url: str = "http://localhost:54321/functions/v1/study-assistant"
    chat_access_token: str = ""
    chat_timeout_seconds: float = 60.0
    chat_max_retries: int = 3
    sse_max_rebuffer_attempts: int = 8
    sse_max_buffer_chars: int = 1_000_000
    default_user_id: str = "local"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8080"]
    debug: bool = False

    model_config = {"env_prefix": "STUDYDASH_", "env_file": ".env"}


settings = Settings()
