from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_keys(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [key.strip() for key in raw.split(",") if key.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    This uses pydantic-settings so that we get type validation and defaults.
    A missing required setting (MODULE_ADDRESS) fails here, at startup,
    before any polling begins.
    """

    # App basics
    ENV: Literal["development", "staging", "production"] = "development"
    """Environment mode: affects logging and the reset guard in db.init."""

    DEBUG: bool = True
    """Enable debug mode: verbose logging."""

    # DB
    DATABASE_URL: Optional[str] = None
    """Database connection URL. If None, uses SQLite for development."""

    # Ledger
    MODULE_ADDRESS: str
    """Publisher account address; events outside this module are ignored."""

    APTOS_NETWORK: Literal["mainnet", "testnet", "devnet"] = "testnet"
    """Network preset used to pick the fullnode RPC URL."""

    LEDGER_RPC_URL: Optional[str] = None
    """Explicit fullnode URL. Overrides APTOS_NETWORK when set."""

    LEDGER_TIMEOUT_SECONDS: float = 30.0
    """Per-request timeout for ledger RPC calls."""

    # Credentials (comma-separated)
    APTOS_API_KEYS: Optional[str] = None
    NODIT_API_KEYS: Optional[str] = None

    CREDENTIAL_MIN_DELAY_MS: int = 100
    """Minimum interval between two uses of the same credential."""

    # Downstream notifications
    WEBHOOK_URL: Optional[str] = None
    """Receiver for live event notifications. Notifications are off when unset."""

    WEBHOOK_TIMEOUT_SECONDS: float = 10.0

    # Poller
    POLL_INTERVAL_SECONDS: int = 5
    POLLER_BATCH_SIZE: int = 100
    """Transactions requested per ledger page."""

    INDEXER_START_VERSION: Optional[int] = None
    """First version to index when no checkpoint is stored (backfill)."""

    INDEXER_AUTOSTART: bool = True
    """Start the poller from the application lifespan."""

    # Control surface
    INDEXER_PORT: int = 3002
    LOG_BUFFER_SIZE: int = 500
    """Number of recent log entries kept for the /logs endpoint."""

    # Model config
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    def get_credential_pools(self) -> dict[str, list[str]]:
        """Return the configured credential pools keyed by pool name."""
        return {
            "aptos": _split_keys(self.APTOS_API_KEYS),
            "nodit": _split_keys(self.NODIT_API_KEYS),
        }

    def get_database_url(self) -> str:
        return self.DATABASE_URL or "sqlite+aiosqlite:///./indexer.db"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance to avoid re-parsing .env repeatedly."""
    return Settings()  # type: ignore[call-arg]
