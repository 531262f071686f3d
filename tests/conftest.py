"""Shared fixtures: point the app at a throwaway SQLite database."""

import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="studydash-tests-")
os.environ.setdefault("STUDYDASH_DATABASE_URL", f"sqlite+aiosqlite:///{_db_dir}/test.db")

import pytest_asyncio  # noqa: E402

from backend.database import async_session, engine  # noqa: E402
from backend.models import Base  # noqa: E402


@pytest_asyncio.fixture
async def db():
    """A session over freshly created tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with async_session() as session:
        yield session
    await engine.dispose()
