"""
Best-effort webhook notifier.

Handlers hand events to :meth:`WebhookNotifier.send`, which returns
immediately. Delivery runs as a detached task with its own timeout; the
result is only logged. Nothing here ever raises into the caller.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional, Set

import httpx
import structlog

from ledger_indexer.notifications.models import (
    DeliveryResult,
    DeliveryStatus,
    WebhookPayload,
)

logger = structlog.get_logger()


class WebhookNotifier:
    """Fire-and-forget POST of event envelopes to a single receiver URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        max_pending: int = 100,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the notifier.

        Args:
            url: Receiver URL
            timeout: Per-delivery timeout in seconds
            max_pending: Deliveries allowed in flight before new ones are dropped
            transport: Custom httpx transport (tests)
        """
        self.url = url
        self.timeout = timeout
        self.max_pending = max_pending
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._pending: Set[asyncio.Task] = set()

        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def send(
        self, event_type: str, data: dict[str, Any], tx_hash: str, sender: str
    ) -> Optional[DeliveryResult]:
        """
        Schedule delivery of one event and return without waiting.

        Args:
            event_type: Fully-qualified event type
            data: Normalized event payload
            tx_hash: Hash of the emitting transaction
            sender: Transaction sender

        Returns:
            A DROPPED result when the pending queue is full, otherwise None
        """
        if len(self._pending) >= self.max_pending:
            self.dropped += 1
            result = DeliveryResult(
                status=DeliveryStatus.DROPPED,
                event_type=event_type,
                tx_hash=tx_hash,
                error=f"{len(self._pending)} deliveries pending",
            )
            logger.warning("notifier.dropped", **result.model_dump(mode="json"))
            return result

        payload = WebhookPayload.build(event_type, data, tx_hash, sender)
        task = asyncio.create_task(self._deliver(payload))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return None

    async def _deliver(self, payload: WebhookPayload) -> DeliveryResult:
        start = time.perf_counter()
        event_type = payload.event.type
        tx_hash = payload.transaction.hash

        try:
            response = await self._client.post(
                self.url,
                json=payload.model_dump(),
                headers={"Content-Type": "application/json"},
            )
        except Exception as e:
            self.failed += 1
            result = DeliveryResult(
                status=DeliveryStatus.FAILED,
                event_type=event_type,
                tx_hash=tx_hash,
                error=f"{type(e).__name__}: {e}",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            logger.warning("notifier.failed", **result.model_dump(mode="json"))
            return result

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if response.is_success:
            self.delivered += 1
            result = DeliveryResult(
                status=DeliveryStatus.DELIVERED,
                event_type=event_type,
                tx_hash=tx_hash,
                status_code=response.status_code,
                duration_ms=duration_ms,
            )
            logger.info("notifier.delivered", **result.model_dump(mode="json"))
        else:
            self.failed += 1
            result = DeliveryResult(
                status=DeliveryStatus.REJECTED,
                event_type=event_type,
                tx_hash=tx_hash,
                status_code=response.status_code,
                error=response.text[:200],
                duration_ms=duration_ms,
            )
            logger.warning("notifier.rejected", **result.model_dump(mode="json"))
        return result

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled delivery to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Drain outstanding deliveries and close the HTTP client."""
        await self.drain()
        await self._client.aclose()

    def get_stats(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "pending": len(self._pending),
            "delivered": self.delivered,
            "failed": self.failed,
            "dropped": self.dropped,
        }
