"""
Ledger poller configuration.

Defines polling intervals, batch sizing, the module filter and the
starting-point policy used when no checkpoint exists.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ledger_indexer.core.config import Settings, get_settings


class IndexerConfig(BaseModel):
    """Main ledger poller configuration."""

    # Event filter
    module_address: str = Field(
        min_length=1, description="Publisher address of the indexed module"
    )

    # Polling behavior
    poll_interval_seconds: float = Field(
        default=5.0, gt=0, description="Seconds between polling runs"
    )
    batch_size: int = Field(
        default=100, ge=1, le=1000, description="Transactions per ledger request"
    )
    start_version: Optional[int] = Field(
        default=None,
        ge=0,
        description="First version to index when no checkpoint is stored (backfill)",
    )

    # Credentials
    credential_pool: str = Field(
        default="aptos", description="Credential pool used for ledger calls"
    )
    credential_min_delay_ms: int = Field(
        default=100, ge=0, description="Minimum reuse interval per credential"
    )

    # Operational settings
    enabled: bool = Field(default=True, description="Enable/disable scheduled polls")
    metrics_history_size: int = Field(
        default=100, ge=1, description="Poll runs kept in memory for metrics"
    )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "IndexerConfig":
        settings = settings or get_settings()
        return cls(
            module_address=settings.MODULE_ADDRESS,
            poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
            batch_size=settings.POLLER_BATCH_SIZE,
            start_version=settings.INDEXER_START_VERSION,
            credential_min_delay_ms=settings.CREDENTIAL_MIN_DELAY_MS,
        )
