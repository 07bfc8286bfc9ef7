"""Market repository."""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import update

from ledger_indexer.db.models.market import Market
from ledger_indexer.db.repository import BaseRepository


class MarketRepository(BaseRepository[Market]):
    """Repository for Market rows."""

    async def get_by_address(self, market_address: str) -> Optional[Market]:
        """Get a market by its on-chain address."""
        return await self.get_by_field("market_address", market_address)

    async def update_status(self, market_address: str, status: str) -> bool:
        """
        Overwrite a market's status.

        Unconditional overwrite, so repeating it is harmless.

        Args:
            market_address: Market address
            status: New status value

        Returns:
            True if a market row was updated, False if the market is unknown
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.market_address == market_address)
            .values(status=status, updated_at=datetime.now(timezone.utc))
        )
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]
