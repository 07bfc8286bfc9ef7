"""Database models for the ledger event indexer."""

from .sync_state import SyncState
from .activity import Activity
from .market import Market

__all__ = ["SyncState", "Activity", "Market"]
