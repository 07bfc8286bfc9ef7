"""
In-memory ledger client for development and testing.

Holds an ordered list of transactions and serves them the way a fullnode
would, with optional simulated latency and failures.
"""

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

from ledger_indexer.ledger.clients.base import (
    BaseLedgerClient,
    LedgerConnectionError,
    LedgerEvent,
    LedgerTransaction,
    USER_TRANSACTION,
)
from ledger_indexer.ledger.rotator import CredentialRotator


class MockLedgerClient(BaseLedgerClient):
    """
    Mock ledger backed by a dict of version -> transaction.

    The tip defaults to the highest stored version but can be pushed ahead
    with :meth:`set_latest_version` to model versions that carry no events
    of interest.
    """

    def __init__(
        self,
        transactions: Optional[List[LedgerTransaction]] = None,
        rotator: Optional[CredentialRotator] = None,
        credential_pool: str = "aptos",
        failure_rate: float = 0.0,
        latency_ms: int = 0,
    ):
        """
        Initialize mock client.

        Args:
            transactions: Initial transactions
            rotator: Credential rotator (credentials are acquired but unused)
            credential_pool: Pool name to draw credentials from
            failure_rate: Probability of simulated failure (0.0 to 1.0)
            latency_ms: Simulated network latency in milliseconds
        """
        super().__init__(rotator, credential_pool)
        self.failure_rate = failure_rate
        self.latency_ms = latency_ms
        self._transactions: Dict[int, LedgerTransaction] = {}
        self._latest_version: Optional[int] = None
        self._failing_fetch_starts: Set[int] = set()
        self.credentials_seen: List[Optional[str]] = []
        self.fetch_calls: List[tuple] = []
        for tx in transactions or []:
            self.add_transaction(tx)

    def get_source_name(self) -> str:
        return "mock"

    def add_transaction(self, tx: LedgerTransaction) -> None:
        self._transactions[tx.version] = tx

    def set_latest_version(self, version: int) -> None:
        self._latest_version = version

    def fail_fetch_at(self, start: int) -> None:
        """Make every fetch whose page starts at ``start`` raise."""
        self._failing_fetch_starts.add(start)

    def clear_failures(self) -> None:
        self._failing_fetch_starts.clear()
        self.failure_rate = 0.0

    async def get_latest_version(self) -> int:
        await self._before_call()
        stored = max(self._transactions) if self._transactions else 0
        if self._latest_version is None:
            return stored
        return max(self._latest_version, stored)

    async def fetch_transactions(
        self, start: int, limit: int = 100
    ) -> List[LedgerTransaction]:
        await self._before_call()
        self.fetch_calls.append((start, limit))
        if start in self._failing_fetch_starts:
            raise LedgerConnectionError(f"Simulated fetch failure at version {start}")

        return [
            self._transactions[v]
            for v in range(start, start + limit)
            if v in self._transactions
        ]

    async def _before_call(self) -> None:
        self.credentials_seen.append(await self.acquire_credential())
        if self.latency_ms > 0:
            await asyncio.sleep(self.latency_ms / 1000.0)
        if self.failure_rate and random.random() < self.failure_rate:
            raise LedgerConnectionError("Simulated ledger connection failure")


def make_event(
    module_address: str, kind: str, data: Dict[str, Any], module: str = "market"
) -> LedgerEvent:
    """Build an event whose type is ``<address>::<module>::<kind>``."""
    return LedgerEvent(type=f"{module_address}::{module}::{kind}", data=data)


def make_transaction(
    version: int,
    events: Optional[List[LedgerEvent]] = None,
    success: bool = True,
    tx_type: str = USER_TRANSACTION,
    sender: str = "0xsender",
    tx_hash: Optional[str] = None,
    timestamp: Optional[datetime] = None,
) -> LedgerTransaction:
    """Build a ledger transaction with sensible defaults."""
    return LedgerTransaction(
        version=version,
        hash=tx_hash or f"0x{version:064x}",
        success=success,
        type=tx_type,
        sender=sender,
        timestamp=timestamp or datetime.now(timezone.utc),
        events=events or [],
    )
