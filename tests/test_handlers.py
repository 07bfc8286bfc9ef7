"""
Tests for market event handlers.

Exercises persistence through the real unit of work on an in-memory
database, idempotent replays and notifier hand-off.
"""

from decimal import Decimal
from unittest.mock import Mock

import pytest

from ledger_indexer.db.models.market import MARKET_STATUS_ACTIVE, MARKET_STATUS_RESOLVED
from ledger_indexer.db.unit_of_work import UnitOfWork
from ledger_indexer.ledger.clients.mock_client import make_event, make_transaction
from ledger_indexer.ledger.dispatcher import EventDispatcher
from ledger_indexer.ledger.handlers import MarketEventHandlers
from ledger_indexer.notifications.notifier import WebhookNotifier

MARKET = "0x" + "ab" * 32
USER = "0x" + "cd" * 32


def mint_event(module_address, **overrides):
    data = {
        "market_address": MARKET,
        "user": USER,
        "apt_amount_in": "100000000",
        "shares_out": "2000000",
        "is_yes": True,
    }
    data.update(overrides)
    return make_event(module_address, "SharesMintedEvent", data)


def burn_event(module_address, **overrides):
    data = {
        "market_address": MARKET,
        "user": USER,
        "shares_in": "1000000",
        "apt_amount_out": "40000000",
        "is_yes": False,
    }
    data.update(overrides)
    return make_event(module_address, "SharesBurnedEvent", data)


@pytest.fixture
def notifier():
    return Mock(spec=WebhookNotifier)


@pytest.fixture
def dispatcher(module_address, notifier):
    dispatcher = EventDispatcher(module_address)
    MarketEventHandlers(notifier=notifier).register(dispatcher)
    return dispatcher


async def all_activities():
    async with UnitOfWork() as uow:
        return await uow.activities.get_all()


async def create_market(address=MARKET):
    async with UnitOfWork() as uow:
        await uow.markets.create(
            market_address=address, creator=USER, description="Will it rain?"
        )
        await uow.commit()


class TestShareEvents:
    """BUY and SELL activities."""

    @pytest.mark.asyncio
    async def test_mint_end_to_end(self, test_db, dispatcher, module_address):
        """A mint of 1 APT for 2 YES shares persists one BUY/YES activity."""
        tx = make_transaction(7, [mint_event(module_address)], tx_hash="0xmint")

        result = await dispatcher.dispatch(tx)

        assert result.handled == 1
        rows = await all_activities()
        assert len(rows) == 1
        activity = rows[0]
        assert activity.tx_hash == "0xmint"
        assert activity.action == "BUY"
        assert activity.outcome == "YES"
        assert activity.amount == Decimal("2.0")
        assert activity.total_value == Decimal("1.0")
        assert activity.market_address == MARKET
        assert activity.user_address == USER

    @pytest.mark.asyncio
    async def test_burn_records_sell(self, test_db, dispatcher, module_address):
        tx = make_transaction(8, [burn_event(module_address)], tx_hash="0xburn")

        await dispatcher.dispatch(tx)

        async with UnitOfWork() as uow:
            activity = await uow.activities.get_by_tx_hash("0xburn")
        assert activity.action == "SELL"
        assert activity.outcome == "NO"
        assert activity.amount == Decimal("1")
        assert activity.total_value == Decimal("0.4")

    @pytest.mark.asyncio
    async def test_replay_is_idempotent(self, test_db, dispatcher, module_address):
        tx = make_transaction(7, [mint_event(module_address)], tx_hash="0xmint")

        first = await dispatcher.dispatch(tx)
        second = await dispatcher.dispatch(tx)

        assert first.failed == 0
        assert second.failed == 0
        assert len(await all_activities()) == 1

    @pytest.mark.asyncio
    async def test_malformed_payload_still_recorded(
        self, test_db, dispatcher, module_address
    ):
        event = make_event(
            module_address, "SharesMintedEvent", {"apt_amount_in": "garbage"}
        )
        tx = make_transaction(9, [event], tx_hash="0xbad")

        result = await dispatcher.dispatch(tx)

        assert result.failed == 0
        rows = await all_activities()
        assert rows[0].total_value == Decimal(0)
        assert rows[0].outcome == "NO"


class TestMarketEvents:
    """Creation and resolution."""

    @pytest.mark.asyncio
    async def test_resolution_updates_status(self, test_db, dispatcher, module_address):
        await create_market()
        event = make_event(
            module_address,
            "MarketResolvedEvent",
            {"market_address": MARKET, "outcome": "YES"},
        )

        result = await dispatcher.dispatch(make_transaction(12, [event]))

        assert result.handled == 1
        async with UnitOfWork() as uow:
            market = await uow.markets.get_by_address(MARKET)
        assert market.status == MARKET_STATUS_RESOLVED

    @pytest.mark.asyncio
    async def test_resolution_of_unknown_market_is_not_an_error(
        self, test_db, dispatcher, module_address
    ):
        event = make_event(
            module_address, "MarketResolvedEvent", {"market_address": "0xnone"}
        )

        result = await dispatcher.dispatch(make_transaction(12, [event]))

        assert result.handled == 1
        assert result.failed == 0

    @pytest.mark.asyncio
    async def test_creation_writes_nothing(
        self, test_db, dispatcher, module_address, notifier
    ):
        event = make_event(
            module_address,
            "MarketCreatedEvent",
            {"market_address": MARKET, "creator": USER, "description": "Q?"},
        )

        await dispatcher.dispatch(make_transaction(10, [event]))

        async with UnitOfWork() as uow:
            assert await uow.markets.get_by_address(MARKET) is None
        notifier.send.assert_called_once()
        event_type, data, _, _ = notifier.send.call_args.args
        assert event_type.endswith("::MarketCreatedEvent")
        assert data["description"] == "Q?"

    @pytest.mark.asyncio
    async def test_other_markets_untouched(self, test_db, dispatcher, module_address):
        other = "0x" + "ef" * 32
        await create_market()
        await create_market(other)
        event = make_event(
            module_address, "MarketResolvedEvent", {"market_address": MARKET}
        )

        await dispatcher.dispatch(make_transaction(12, [event]))

        async with UnitOfWork() as uow:
            assert (await uow.markets.get_by_address(other)).status == MARKET_STATUS_ACTIVE


class TestNotifications:
    """Notifier hand-off after commit."""

    @pytest.mark.asyncio
    async def test_mint_notifies_with_raw_amounts(
        self, test_db, dispatcher, module_address, notifier
    ):
        tx = make_transaction(
            7, [mint_event(module_address)], tx_hash="0xmint", sender="0xs"
        )

        await dispatcher.dispatch(tx)

        notifier.send.assert_called_once()
        event_type, data, tx_hash, sender = notifier.send.call_args.args
        assert event_type == f"{module_address}::market::SharesMintedEvent"
        assert data == {
            "market_address": MARKET,
            "buyer": USER,
            "is_yes_outcome": True,
            "apt_amount_in": "100000000",
            "shares_out": "2000000",
        }
        assert tx_hash == "0xmint"
        assert sender == "0xs"

    @pytest.mark.asyncio
    async def test_replay_not_renotified(
        self, test_db, dispatcher, module_address, notifier
    ):
        tx = make_transaction(7, [mint_event(module_address)], tx_hash="0xmint")

        await dispatcher.dispatch(tx)
        await dispatcher.dispatch(tx)

        assert notifier.send.call_count == 1

    @pytest.mark.asyncio
    async def test_notifier_error_never_propagates(
        self, test_db, dispatcher, module_address, notifier
    ):
        notifier.send.side_effect = RuntimeError("queue broken")
        tx = make_transaction(7, [mint_event(module_address)], tx_hash="0xmint")

        result = await dispatcher.dispatch(tx)

        assert result.failed == 0
        assert len(await all_activities()) == 1

    @pytest.mark.asyncio
    async def test_runs_without_notifier(self, test_db, module_address):
        dispatcher = EventDispatcher(module_address)
        MarketEventHandlers().register(dispatcher)

        result = await dispatcher.dispatch(
            make_transaction(7, [mint_event(module_address)])
        )

        assert result.handled == 1


class TestPersistenceFailure:
    @pytest.mark.asyncio
    async def test_write_failure_counted_and_siblings_continue(
        self, test_db, module_address, monkeypatch
    ):
        handlers = MarketEventHandlers()
        dispatcher = EventDispatcher(module_address)
        handlers.register(dispatcher)

        calls = {"n": 0}
        original = handlers._record_activity

        async def flaky(*args, **kwargs):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConnectionError("database went away")
            return await original(*args, **kwargs)

        monkeypatch.setattr(handlers, "_record_activity", flaky)
        tx = make_transaction(
            7, [mint_event(module_address), burn_event(module_address)], tx_hash="0xtx"
        )

        result = await dispatcher.dispatch(tx)

        assert result.failed == 1
        assert result.handled == 1
        rows = await all_activities()
        assert [r.action for r in rows] == ["SELL"]
