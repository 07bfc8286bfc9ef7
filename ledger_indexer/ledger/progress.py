"""Durable checkpoint of the last fully processed ledger version."""

from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_indexer.db.models.sync_state import LAST_INDEXED_VERSION_KEY
from ledger_indexer.db.unit_of_work import UnitOfWork

logger = structlog.get_logger()


class ProgressStore:
    """
    Reads and writes the ``last_indexed_version`` row of ``sync_state``.

    The value is stored as a decimal string. Only the poller writes it.
    """

    def __init__(
        self, session: Optional[AsyncSession] = None, key: str = LAST_INDEXED_VERSION_KEY
    ):
        """
        Args:
            session: Optional database session for testing
            key: sync_state key holding the checkpoint
        """
        self._session = session
        self.key = key

    async def load(self) -> Optional[int]:
        """
        Load the stored checkpoint.

        Returns:
            Last processed version, or None when nothing usable is stored
        """
        async with UnitOfWork(session=self._session) as uow:
            raw = await uow.sync_state.get_value(self.key)

        if raw is None:
            return None
        try:
            return int(raw)
        except ValueError:
            logger.warning("progress.invalid_checkpoint", key=self.key, value=raw)
            return None

    async def save(self, version: int) -> None:
        """Persist ``version`` with the store's native upsert."""
        async with UnitOfWork(session=self._session) as uow:
            await uow.sync_state.set_value(self.key, str(version))
            await uow.commit()
        logger.debug("progress.saved", key=self.key, version=version)
