"""Activity model for trades derived from on-chain share events."""

from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import String, DateTime, Numeric, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from ledger_indexer.db.base import Base


class Activity(Base):
    """
    One row per BUY/SELL derived from a SharesMinted/SharesBurned event.

    ``tx_hash`` is the natural key: replaying the same transaction never
    creates a second row.
    """

    __tablename__ = "activities"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(
        String(66),
        unique=True,
        nullable=False,
        index=True,
        comment="Ledger transaction hash (deduplication key)",
    )
    market_address: Mapped[str] = mapped_column(
        String(66),
        nullable=False,
        index=True,
        comment="Market object address",
    )
    user_address: Mapped[str] = mapped_column(
        String(66),
        nullable=False,
        index=True,
        comment="Trader account address",
    )

    action: Mapped[str] = mapped_column(
        String(8), nullable=False, comment="BUY or SELL"
    )
    outcome: Mapped[str] = mapped_column(
        String(8), nullable=False, comment="YES or NO"
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=8),
        nullable=False,
        comment="Shares traded, scaled from 6-decimal units",
    )
    total_value: Mapped[Decimal] = mapped_column(
        Numeric(precision=30, scale=8),
        nullable=False,
        comment="APT paid or received, scaled from octas",
    )

    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
        comment="Ledger timestamp of the transaction",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("idx_activity_market_timestamp", "market_address", "timestamp"),
        Index("idx_activity_user_timestamp", "user_address", "timestamp"),
    )

    def __repr__(self) -> str:
        return (
            f"<Activity(tx_hash={self.tx_hash}, action={self.action}, "
            f"outcome={self.outcome}, amount={self.amount}, total_value={self.total_value})>"
        )
