"""
Event filter and routing.

Selects the events of one Move module from a transaction and routes each
to the handler registered for its kind (the terminal ``::`` segment of the
event type).
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List

import structlog

from ledger_indexer.ledger.clients.base import LedgerEvent, LedgerTransaction

logger = structlog.get_logger()

EventHandler = Callable[[LedgerEvent, LedgerTransaction], Awaitable[None]]


@dataclass
class DispatchResult:
    """Per-transaction routing outcome."""

    handled: int = 0
    failed: int = 0
    unhandled: int = 0  # Module events with no registered handler
    skipped: int = 0  # Events from other modules or malformed types
    ignored: bool = False  # Whole transaction filtered out

    def merge(self, other: "DispatchResult") -> None:
        self.handled += other.handled
        self.failed += other.failed
        self.unhandled += other.unhandled
        self.skipped += other.skipped


class EventDispatcher:
    """Routes module events to handlers by kind."""

    def __init__(self, module_address: str):
        """
        Args:
            module_address: Account address the module is published under
        """
        if not module_address:
            raise ValueError("module_address is required")
        self.module_address = module_address
        self._handlers: Dict[str, EventHandler] = {}

    def register(self, kind: str, handler: EventHandler) -> None:
        """Register ``handler`` for events whose type ends in ``::kind``."""
        self._handlers[kind] = handler

    def registered_kinds(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(self, tx: LedgerTransaction) -> DispatchResult:
        """
        Run the handlers for every matching event of ``tx``, in event order.

        Failed or non-user transactions are ignored. A handler error is
        logged and counted; sibling events are still processed.
        """
        result = DispatchResult()
        if not tx.success or not tx.is_user_transaction:
            result.ignored = True
            return result

        for index, event in enumerate(tx.events):
            if self.module_address not in event.type:
                result.skipped += 1
                continue

            # address::module::Kind
            if event.type.count("::") < 2:
                result.skipped += 1
                continue
            kind = event.kind

            handler = self._handlers.get(kind)
            if handler is None:
                result.unhandled += 1
                logger.debug("dispatch.no_handler", kind=kind, tx_hash=tx.hash)
                continue

            try:
                await handler(event, tx)
                result.handled += 1
            except Exception as e:
                result.failed += 1
                logger.error(
                    "dispatch.handler_failed",
                    kind=kind,
                    tx_hash=tx.hash,
                    version=tx.version,
                    event_index=index,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        return result
