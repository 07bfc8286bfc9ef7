"""
Handlers for market module events.

Each handler decodes its payload, performs at most one idempotent write in
its own unit of work, commits, and only then hands a normalized payload to
the notifier. A database transaction is never held open across the
notification.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_indexer.db.models.market import MARKET_STATUS_RESOLVED
from ledger_indexer.db.unit_of_work import UnitOfWork
from ledger_indexer.ledger.clients.base import LedgerEvent, LedgerTransaction
from ledger_indexer.ledger.dispatcher import EventDispatcher
from ledger_indexer.ledger.events import (
    MarketCreatedEvent,
    MarketResolvedEvent,
    SharesBurnedEvent,
    SharesMintedEvent,
    outcome_label,
)
from ledger_indexer.notifications.notifier import WebhookNotifier

logger = structlog.get_logger()

ACTION_BUY = "BUY"
ACTION_SELL = "SELL"


def _short(address: str) -> str:
    return address[:10] + "..." if len(address) > 10 else address


class MarketEventHandlers:
    """Persistence and notification for SharesMinted/Burned and Market events."""

    def __init__(
        self,
        notifier: Optional[WebhookNotifier] = None,
        session: Optional[AsyncSession] = None,
    ):
        """
        Args:
            notifier: Webhook notifier; notifications are skipped when None
            session: Optional database session for testing
        """
        self.notifier = notifier
        self._session = session

    def register(self, dispatcher: EventDispatcher) -> None:
        """Register every handler on ``dispatcher`` under its event kind."""
        dispatcher.register("SharesMintedEvent", self.handle_shares_minted)
        dispatcher.register("SharesBurnedEvent", self.handle_shares_burned)
        dispatcher.register("MarketCreatedEvent", self.handle_market_created)
        dispatcher.register("MarketResolvedEvent", self.handle_market_resolved)

    async def handle_shares_minted(
        self, event: LedgerEvent, tx: LedgerTransaction
    ) -> None:
        payload = SharesMintedEvent.decode(event.data)
        inserted = await self._record_activity(
            tx,
            market_address=payload.market_address,
            user_address=payload.user,
            action=ACTION_BUY,
            is_yes=payload.is_yes,
            shares=payload.shares,
            apt_amount=payload.apt_amount,
        )
        self._notify(
            event,
            tx,
            {
                "market_address": payload.market_address,
                "buyer": payload.user,
                "is_yes_outcome": payload.is_yes,
                "apt_amount_in": payload.apt_amount_in,
                "shares_out": payload.shares_out,
            },
            inserted,
        )

    async def handle_shares_burned(
        self, event: LedgerEvent, tx: LedgerTransaction
    ) -> None:
        payload = SharesBurnedEvent.decode(event.data)
        inserted = await self._record_activity(
            tx,
            market_address=payload.market_address,
            user_address=payload.user,
            action=ACTION_SELL,
            is_yes=payload.is_yes,
            shares=payload.shares,
            apt_amount=payload.apt_amount,
        )
        self._notify(
            event,
            tx,
            {
                "market_address": payload.market_address,
                "seller": payload.user,
                "is_yes_outcome": payload.is_yes,
                "apt_amount_out": payload.apt_amount_out,
                "shares_in": payload.shares_in,
            },
            inserted,
        )

    async def handle_market_created(
        self, event: LedgerEvent, tx: LedgerTransaction
    ) -> None:
        # The market row itself is written by the market service
        payload = MarketCreatedEvent.decode(event.data)
        logger.info(
            "handler.market_created",
            tx_hash=tx.hash,
            market=_short(payload.market_address),
            creator=_short(payload.creator),
            description=payload.description,
        )
        self._notify(event, tx, payload.model_dump(), True)

    async def handle_market_resolved(
        self, event: LedgerEvent, tx: LedgerTransaction
    ) -> None:
        payload = MarketResolvedEvent.decode(event.data)

        async with UnitOfWork(session=self._session) as uow:
            updated = await uow.markets.update_status(
                payload.market_address, MARKET_STATUS_RESOLVED
            )
            await uow.commit()

        if updated:
            logger.info(
                "handler.market_resolved",
                tx_hash=tx.hash,
                market=_short(payload.market_address),
                outcome=payload.outcome,
            )
        else:
            logger.warning(
                "handler.market_resolved_unknown_market",
                tx_hash=tx.hash,
                market=payload.market_address,
            )
        self._notify(event, tx, payload.model_dump(), True)

    async def _record_activity(
        self,
        tx: LedgerTransaction,
        market_address: str,
        user_address: str,
        action: str,
        is_yes: bool,
        shares: Decimal,
        apt_amount: Decimal,
    ) -> bool:
        outcome = outcome_label(is_yes)
        async with UnitOfWork(session=self._session) as uow:
            inserted = await uow.activities.insert_or_ignore(
                tx_hash=tx.hash,
                market_address=market_address,
                user_address=user_address,
                action=action,
                outcome=outcome,
                amount=shares,
                total_value=apt_amount,
                timestamp=tx.timestamp,
            )
            await uow.commit()

        if inserted:
            logger.info(
                "handler.activity_recorded",
                tx_hash=tx.hash,
                action=action,
                outcome=outcome,
                market=_short(market_address),
                user=_short(user_address),
                apt=str(apt_amount),
                shares=str(shares),
            )
        else:
            logger.debug("handler.activity_duplicate", tx_hash=tx.hash, action=action)
        return inserted

    def _notify(
        self,
        event: LedgerEvent,
        tx: LedgerTransaction,
        data: Dict[str, Any],
        first_seen: bool,
    ) -> None:
        """Hand the event to the notifier. Replayed activities are not re-announced."""
        if self.notifier is None or not first_seen:
            return
        try:
            self.notifier.send(event.type, data, tx.hash, tx.sender)
        except Exception as e:
            logger.warning(
                "handler.notify_failed",
                tx_hash=tx.hash,
                event_type=event.type,
                error=str(e),
            )
