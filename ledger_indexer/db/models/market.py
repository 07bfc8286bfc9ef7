"""Market model. Rows are created by the market writer, the indexer only resolves them."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from ledger_indexer.db.base import Base


MARKET_STATUS_ACTIVE = "active"
MARKET_STATUS_RESOLVED = "resolved"


class Market(Base):
    """Prediction market known to the application."""

    __tablename__ = "markets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    market_address: Mapped[str] = mapped_column(
        String(66),
        unique=True,
        nullable=False,
        index=True,
        comment="Market object address",
    )
    creator: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=MARKET_STATUS_ACTIVE,
        index=True,
        comment="Market status (e.g., 'active', 'resolved')",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Market(market_address={self.market_address}, status={self.status})>"
