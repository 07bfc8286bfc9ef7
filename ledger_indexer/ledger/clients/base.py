"""
Base ledger API client interface.

Defines the transaction/event models read from the ledger and the contract
that every ledger client implements.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ledger_indexer.ledger.rotator import CredentialRotator

USER_TRANSACTION = "user_transaction"


class LedgerEvent(BaseModel):
    """Event emitted by a transaction, e.g. ``0xabc::market::SharesMintedEvent``."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def data_as_mapping(cls, value: Any) -> Dict[str, Any]:
        return value if isinstance(value, dict) else {}

    @property
    def kind(self) -> str:
        """Terminal ``::`` segment of the fully-qualified type."""
        return self.type.split("::")[-1]


class LedgerTransaction(BaseModel):
    """Transaction as returned by the fullnode ``/transactions`` endpoint."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    version: int
    hash: str = ""
    success: bool = False
    type: str = ""
    sender: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    events: List[LedgerEvent] = Field(default_factory=list)

    @field_validator("timestamp", mode="before")
    @classmethod
    def parse_timestamp(cls, value: Any) -> Any:
        """Accept microseconds since epoch (fullnode format) or ISO-8601."""
        if isinstance(value, datetime):
            return value
        if isinstance(value, (int, float)) or (
            isinstance(value, str) and value.isdigit()
        ):
            return datetime.fromtimestamp(int(value) / 1_000_000, tz=timezone.utc)
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError:
                pass
        return datetime.now(timezone.utc)

    @field_validator("events", mode="before")
    @classmethod
    def events_as_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @property
    def is_user_transaction(self) -> bool:
        return self.type == USER_TRANSACTION


class BaseLedgerClient(ABC):
    """
    Abstract base class for ledger API clients.

    Implementations attach a rotated credential to each outbound call when a
    rotator is configured and never retry internally: a failed call is
    surfaced to the caller, which decides when to try again.
    """

    def __init__(
        self,
        rotator: Optional[CredentialRotator] = None,
        credential_pool: str = "aptos",
        timeout: float = 30.0,
    ):
        """
        Initialize the client.

        Args:
            rotator: Credential rotator shared by all callers (optional)
            credential_pool: Pool name to draw credentials from
            timeout: Request timeout in seconds
        """
        self.rotator = rotator
        self.credential_pool = credential_pool
        self.timeout = timeout

    async def acquire_credential(self) -> Optional[str]:
        """Acquire the next credential, blocking while it is throttled."""
        if self.rotator is None:
            return None
        return await self.rotator.acquire(self.credential_pool)

    @abstractmethod
    async def get_latest_version(self) -> int:
        """
        Get the latest committed ledger version.

        Raises:
            LedgerAPIError: On network failure or non-2xx response
        """

    @abstractmethod
    async def fetch_transactions(
        self, start: int, limit: int = 100
    ) -> List[LedgerTransaction]:
        """
        Fetch up to ``limit`` transactions starting at version ``start``.

        Returns:
            Transactions in ascending version order

        Raises:
            LedgerAPIError: On network failure or non-2xx response
        """

    @abstractmethod
    def get_source_name(self) -> str:
        """Get a short identifier for this ledger source."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""


class LedgerAPIError(Exception):
    """Base exception for ledger client errors."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LedgerConnectionError(LedgerAPIError):
    """Raised when the ledger endpoint cannot be reached."""


class LedgerAuthenticationError(LedgerAPIError):
    """Raised when the ledger rejects the credential."""


class LedgerRateLimitError(LedgerAPIError):
    """Raised when the ledger responds with HTTP 429."""


class LedgerResponseError(LedgerAPIError):
    """Raised on other non-2xx responses or undecodable bodies."""
