"""Activity repository with idempotent inserts."""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select

from ledger_indexer.db.models.activity import Activity
from ledger_indexer.db.repository import BaseRepository


class ActivityRepository(BaseRepository[Activity]):
    """Repository for Activity rows keyed on transaction hash."""

    async def insert_or_ignore(
        self,
        tx_hash: str,
        market_address: str,
        user_address: str,
        action: str,
        outcome: str,
        amount: Decimal,
        total_value: Decimal,
        timestamp: datetime,
    ) -> bool:
        """
        Insert an activity unless one already exists for ``tx_hash``.

        Args:
            tx_hash: Ledger transaction hash (natural key)
            market_address: Market address
            user_address: Trader address
            action: BUY or SELL
            outcome: YES or NO
            amount: Scaled share quantity
            total_value: Scaled APT value
            timestamp: Ledger timestamp

        Returns:
            True if a row was inserted, False if it already existed
        """
        stmt = self.upsert_statement(
            tx_hash=tx_hash,
            market_address=market_address,
            user_address=user_address,
            action=action,
            outcome=outcome,
            amount=amount,
            total_value=total_value,
            timestamp=timestamp,
        ).on_conflict_do_nothing(index_elements=[Activity.tx_hash])

        result = await self.session.execute(stmt)
        await self.session.flush()
        return (result.rowcount or 0) > 0  # type: ignore[attr-defined]

    async def get_by_tx_hash(self, tx_hash: str) -> Optional[Activity]:
        """Get an activity by its transaction hash."""
        return await self.get_by_field("tx_hash", tx_hash)

    async def get_by_market(
        self, market_address: str, limit: Optional[int] = None
    ) -> List[Activity]:
        """
        Get activities for a market, newest first.

        Args:
            market_address: Market address
            limit: Maximum number to return

        Returns:
            List of activities
        """
        query = (
            select(self.model)
            .where(self.model.market_address == market_address)
            .order_by(self.model.timestamp.desc())
        )
        if limit:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())
