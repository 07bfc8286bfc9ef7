"""SyncState model holding indexer progress checkpoints."""

from datetime import datetime, timezone
from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from ledger_indexer.db.base import Base


LAST_INDEXED_VERSION_KEY = "last_indexed_version"


class SyncState(Base):
    """
    Durable key/value record of indexer progress.

    The poller keeps a single row keyed ``last_indexed_version`` whose value is
    the decimal string of the highest ledger version fully processed.
    """

    __tablename__ = "sync_state"

    key: Mapped[str] = mapped_column(
        String(255),
        primary_key=True,
        comment="State key (e.g., 'last_indexed_version')",
    )
    value: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="State value stored as a decimal string",
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<SyncState(key={self.key}, value={self.value})>"
