import os

# Configure settings before any application module reads them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("YOUTUBE_API_KEY", "test-youtube-key")
os.environ.setdefault("TOKINSIGHT_API_KEY", "test-tokinsight-key")
os.environ.setdefault("COLLECTION_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models import Base


@pytest_asyncio.fixture
async def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def no_sleep():
    """Recording replacement for asyncio.sleep."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep
