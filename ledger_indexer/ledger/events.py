"""
Typed decoders for market module events.

Event payloads arrive as loosely-typed mappings. Each event kind gets a
small pydantic model whose fields fall back to a zero value when missing
or mistyped, so a malformed payload degrades instead of failing the
transaction.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator

APT_DECIMALS = 8
SHARE_DECIMALS = 6


def scale_units(raw: Any, decimals: int) -> Decimal:
    """
    Convert a fixed-point integer amount into a Decimal.

    ``scale_units("100000000", 8) == Decimal("1")``. Anything that is not a
    finite number scales to zero.
    """
    if isinstance(raw, bool):
        return Decimal(0)
    try:
        value = Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not value.is_finite():
        return Decimal(0)
    return value.scaleb(-decimals)


def _lenient_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _lenient_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


class _EventPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def decode(cls, data: Optional[Dict[str, Any]]):
        return cls.model_validate(data if isinstance(data, dict) else {})


class SharesMintedEvent(_EventPayload):
    """User bought outcome shares."""

    market_address: str = ""
    user: str = ""
    apt_amount_in: str = "0"
    shares_out: str = "0"
    is_yes: bool = False

    @field_validator(
        "market_address", "user", "apt_amount_in", "shares_out", mode="before"
    )
    @classmethod
    def coerce_str(cls, value: Any) -> str:
        return _lenient_str(value)

    @field_validator("is_yes", mode="before")
    @classmethod
    def coerce_bool(cls, value: Any) -> bool:
        return _lenient_bool(value)

    @property
    def apt_amount(self) -> Decimal:
        return scale_units(self.apt_amount_in, APT_DECIMALS)

    @property
    def shares(self) -> Decimal:
        return scale_units(self.shares_out, SHARE_DECIMALS)


class SharesBurnedEvent(_EventPayload):
    """User sold outcome shares back to the market."""

    market_address: str = ""
    user: str = ""
    shares_in: str = "0"
    apt_amount_out: str = "0"
    is_yes: bool = False

    @field_validator(
        "market_address", "user", "shares_in", "apt_amount_out", mode="before"
    )
    @classmethod
    def coerce_str(cls, value: Any) -> str:
        return _lenient_str(value)

    @field_validator("is_yes", mode="before")
    @classmethod
    def coerce_bool(cls, value: Any) -> bool:
        return _lenient_bool(value)

    @property
    def apt_amount(self) -> Decimal:
        return scale_units(self.apt_amount_out, APT_DECIMALS)

    @property
    def shares(self) -> Decimal:
        return scale_units(self.shares_in, SHARE_DECIMALS)


class MarketCreatedEvent(_EventPayload):
    """A new market was published."""

    market_address: str = ""
    creator: str = ""
    description: str = ""
    resolution_timestamp: str = ""

    @field_validator(
        "market_address", "creator", "description", "resolution_timestamp",
        mode="before",
    )
    @classmethod
    def coerce_str(cls, value: Any) -> str:
        return _lenient_str(value)


class MarketResolvedEvent(_EventPayload):
    """A market was settled."""

    market_address: str = ""
    outcome: str = ""

    @field_validator("market_address", "outcome", mode="before")
    @classmethod
    def coerce_str(cls, value: Any) -> str:
        return _lenient_str(value)


def outcome_label(is_yes: bool) -> str:
    return "YES" if is_yes else "NO"
