"""SyncState repository: durable progress checkpoints."""

from datetime import datetime, timezone
from typing import Optional

from ledger_indexer.db.models.sync_state import SyncState
from ledger_indexer.db.repository import BaseRepository


class SyncStateRepository(BaseRepository[SyncState]):
    """Repository for SyncState key/value rows."""

    async def get_by_key(self, key: str) -> Optional[SyncState]:
        """Get a state row by key."""
        return await self.get_by_field("key", key)

    async def get_value(self, key: str) -> Optional[str]:
        """Return the raw string value for ``key`` or None if absent."""
        state = await self.get_by_key(key)
        return state.value if state else None

    async def set_value(self, key: str, value: str) -> None:
        """
        Create or overwrite a state value atomically.

        Uses the database's native upsert so a manual trigger and a
        scheduled tick writing at the same time cannot lose an update.

        Args:
            key: State key
            value: New value (stored as string)
        """
        now = datetime.now(timezone.utc)
        stmt = self.upsert_statement(key=key, value=value, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[SyncState.key],
            set_={"value": value, "updated_at": now},
        )
        await self.session.execute(stmt)
        await self.session.flush()
