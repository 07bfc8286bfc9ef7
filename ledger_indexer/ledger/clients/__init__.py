"""Ledger API client implementations."""

from ledger_indexer.ledger.clients.base import (
    BaseLedgerClient,
    LedgerAPIError,
    LedgerEvent,
    LedgerTransaction,
)
from ledger_indexer.ledger.clients.aptos_client import AptosLedgerClient
from ledger_indexer.ledger.clients.mock_client import MockLedgerClient

__all__ = [
    "BaseLedgerClient",
    "LedgerAPIError",
    "LedgerEvent",
    "LedgerTransaction",
    "AptosLedgerClient",
    "MockLedgerClient",
]
