"""Unit of Work pattern for managing database transactions."""

from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_indexer.db import base as db_base
from ledger_indexer.db.models import SyncState, Activity, Market
from ledger_indexer.db.repositories import (
    SyncStateRepository,
    ActivityRepository,
    MarketRepository,
)


class UnitOfWork:
    """
    Unit of Work pattern implementation for managing database transactions.

    All repositories within a context share one session and transaction.
    Keep the context short: never await a network call while it is open.

    Usage:
        async with UnitOfWork() as uow:
            await uow.activities.insert_or_ignore(...)
            await uow.commit()
    """

    def __init__(self, session: Optional[AsyncSession] = None):
        """
        Initialize Unit of Work.

        Args:
            session: Optional existing session (useful for testing)
        """
        self._session = session
        self._owned_session = session is None

        # Repositories (initialized in __aenter__)
        self.sync_state: SyncStateRepository = None  # type: ignore
        self.activities: ActivityRepository = None  # type: ignore
        self.markets: MarketRepository = None  # type: ignore

    async def __aenter__(self):
        """Enter async context manager."""
        if self._owned_session:
            self._session = db_base.AsyncSessionLocal()

        assert self._session is not None, "Session must be initialized"
        self.sync_state = SyncStateRepository(SyncState, self._session)
        self.activities = ActivityRepository(Activity, self._session)
        self.markets = MarketRepository(Market, self._session)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if exc_type is not None:
            await self.rollback()
        else:
            if self._owned_session:
                await self.commit()

        if self._owned_session and self._session:
            await self._session.close()

    async def commit(self):
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()
