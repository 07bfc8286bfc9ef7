"""Repository exports."""

from .sync_state_repository import SyncStateRepository
from .activity_repository import ActivityRepository
from .market_repository import MarketRepository

__all__ = [
    "SyncStateRepository",
    "ActivityRepository",
    "MarketRepository",
]
