"""
Ledger event ingestion.

Polls the ledger for new transactions, routes module events to handlers
with idempotent persistence, and tracks a durable progress checkpoint.
"""

from ledger_indexer.ledger.dispatcher import DispatchResult, EventDispatcher
from ledger_indexer.ledger.handlers import MarketEventHandlers
from ledger_indexer.ledger.metrics import PollerMetrics
from ledger_indexer.ledger.poller import LedgerPoller
from ledger_indexer.ledger.progress import ProgressStore
from ledger_indexer.ledger.rotator import CredentialRotator

__all__ = [
    "CredentialRotator",
    "DispatchResult",
    "EventDispatcher",
    "LedgerPoller",
    "MarketEventHandlers",
    "PollerMetrics",
    "ProgressStore",
]
