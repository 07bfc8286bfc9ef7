import os
import sys
from pathlib import Path
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import ledger_indexer` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

TEST_MODULE_ADDRESS = "0xfeed"

# Force test settings before any package imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["MODULE_ADDRESS"] = TEST_MODULE_ADDRESS
os.environ["INDEXER_AUTOSTART"] = "false"
os.environ.pop("WEBHOOK_URL", None)

from ledger_indexer.db import base as db_base  # noqa: E402
from ledger_indexer.db.base import Base  # noqa: E402
from ledger_indexer.db import models  # noqa: E402,F401


class MemoryProgressStore:
    """Checkpoint store that keeps the value in memory."""

    def __init__(self, version: Optional[int] = None):
        self.version = version
        self.saves: list[int] = []

    async def load(self) -> Optional[int]:
        return self.version

    async def save(self, version: int) -> None:
        self.version = version
        self.saves.append(version)


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def module_address() -> str:
    return TEST_MODULE_ADDRESS


@pytest.fixture
def memory_progress():
    return MemoryProgressStore()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest_asyncio.fixture
async def test_db(monkeypatch):
    """
    Fresh in-memory database per test.

    Patches the package engine and session factory so every UnitOfWork()
    opened by the code under test lands on the same connection.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    monkeypatch.setattr(db_base, "engine", engine)
    monkeypatch.setattr(db_base, "AsyncSessionLocal", session_factory)

    yield session_factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_db):
    """Get a database session for a test."""
    async with test_db() as session:
        yield session
        await session.rollback()
