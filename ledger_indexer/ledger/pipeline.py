"""
Assembly of the ingestion pipeline from settings.

Rotator -> ledger client -> poller -> dispatcher -> handlers -> notifier.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from ledger_indexer.core.config import Settings, get_settings
from ledger_indexer.ledger.clients.aptos_client import AptosLedgerClient, resolve_rpc_url
from ledger_indexer.ledger.clients.base import BaseLedgerClient
from ledger_indexer.ledger.config import IndexerConfig
from ledger_indexer.ledger.dispatcher import EventDispatcher
from ledger_indexer.ledger.handlers import MarketEventHandlers
from ledger_indexer.ledger.poller import LedgerPoller
from ledger_indexer.ledger.progress import ProgressStore
from ledger_indexer.ledger.rotator import CredentialRotator
from ledger_indexer.notifications.notifier import WebhookNotifier

logger = structlog.get_logger()


@dataclass
class IndexerPipeline:
    """Wired components of one pipeline instance."""

    settings: Settings
    config: IndexerConfig
    rotator: CredentialRotator
    client: BaseLedgerClient
    dispatcher: EventDispatcher
    handlers: MarketEventHandlers
    poller: LedgerPoller
    notifier: Optional[WebhookNotifier] = None

    @property
    def rpc_url(self) -> Optional[str]:
        return getattr(self.client, "rpc_url", None)

    async def aclose(self) -> None:
        """Stop polling, flush notifications and close network clients."""
        await self.poller.stop()
        if self.notifier is not None:
            await self.notifier.aclose()
        await self.client.aclose()


def build_pipeline(
    settings: Optional[Settings] = None,
    client: Optional[BaseLedgerClient] = None,
    notifier: Optional[WebhookNotifier] = None,
    progress: Optional[ProgressStore] = None,
) -> IndexerPipeline:
    """
    Build every pipeline component from settings.

    Args:
        settings: Application settings (defaults to the cached instance)
        client: Ledger client override (defaults to the Aptos fullnode client)
        notifier: Notifier override (defaults to one built from WEBHOOK_URL)
        progress: Checkpoint store override

    Raises:
        ValueError: If credential pools overlap
        pydantic.ValidationError: If the poller settings are invalid
    """
    settings = settings or get_settings()
    config = IndexerConfig.from_settings(settings)

    rotator = CredentialRotator(
        settings.get_credential_pools(),
        min_delay=config.credential_min_delay_ms / 1000.0,
    )
    if rotator.pool_size(config.credential_pool) == 0:
        logger.warning("pipeline.no_credentials", pool=config.credential_pool)

    if client is None:
        client = AptosLedgerClient(
            rpc_url=resolve_rpc_url(settings.APTOS_NETWORK, settings.LEDGER_RPC_URL),
            rotator=rotator,
            credential_pool=config.credential_pool,
            timeout=settings.LEDGER_TIMEOUT_SECONDS,
        )

    if notifier is None and settings.WEBHOOK_URL:
        notifier = WebhookNotifier(
            settings.WEBHOOK_URL, timeout=settings.WEBHOOK_TIMEOUT_SECONDS
        )
    if notifier is None:
        logger.warning("pipeline.notifications_disabled", reason="WEBHOOK_URL not set")

    dispatcher = EventDispatcher(config.module_address)
    handlers = MarketEventHandlers(notifier=notifier)
    handlers.register(dispatcher)

    poller = LedgerPoller(client, dispatcher, config, progress=progress)

    logger.info(
        "pipeline.built",
        network=settings.APTOS_NETWORK,
        source=client.get_source_name(),
        handlers=dispatcher.registered_kinds(),
        notifications=notifier is not None,
    )
    return IndexerPipeline(
        settings=settings,
        config=config,
        rotator=rotator,
        client=client,
        dispatcher=dispatcher,
        handlers=handlers,
        poller=poller,
        notifier=notifier,
    )
