"""Wire models for outbound event notifications."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class DeliveryStatus(str, Enum):
    """Outcome of a single notification delivery."""

    DELIVERED = "delivered"
    REJECTED = "rejected"  # Receiver answered with a non-2xx status
    FAILED = "failed"  # Network error or timeout
    DROPPED = "dropped"  # Queue full, never sent


class EventData(BaseModel):
    type: str
    data: dict[str, Any] = Field(default_factory=dict)


class TransactionData(BaseModel):
    hash: str
    sender: str
    timestamp: str = Field(
        default_factory=lambda: datetime.now(timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        ),
        description="Send time, RFC3339 UTC",
    )


class WebhookPayload(BaseModel):
    """JSON envelope POSTed to the downstream receiver."""

    event: EventData
    transaction: TransactionData

    @classmethod
    def build(
        cls, event_type: str, data: dict[str, Any], tx_hash: str, sender: str
    ) -> "WebhookPayload":
        return cls(
            event=EventData(type=event_type, data=data),
            transaction=TransactionData(hash=tx_hash, sender=sender),
        )


class DeliveryResult(BaseModel):
    """Logged outcome of one delivery attempt."""

    status: DeliveryStatus
    event_type: str
    tx_hash: str
    status_code: int | None = None
    error: str | None = None
    duration_ms: float = 0.0
