"""
Ledger poller service.

Walks the ledger forward from the stored checkpoint on a fixed interval,
feeds every transaction through the dispatcher in version order and
advances the checkpoint once the observed range has been applied.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog

from ledger_indexer.ledger.clients.base import BaseLedgerClient, LedgerTransaction
from ledger_indexer.ledger.config import IndexerConfig
from ledger_indexer.ledger.dispatcher import EventDispatcher
from ledger_indexer.ledger.metrics import PollerMetrics, PollStatus
from ledger_indexer.ledger.progress import ProgressStore

logger = structlog.get_logger()


class LedgerPoller:
    """
    Resumable, batched ledger poller.

    Only one pass runs at a time: scheduled ticks and manual triggers share
    a lock. Ledger fetch failures abort the current pass and are retried on
    the next tick; handler failures only skip the affected transaction.
    """

    def __init__(
        self,
        client: BaseLedgerClient,
        dispatcher: EventDispatcher,
        config: IndexerConfig,
        progress: Optional[ProgressStore] = None,
    ):
        """
        Initialize the poller.

        Args:
            client: Ledger API client
            dispatcher: Dispatcher with handlers registered
            config: Poller configuration
            progress: Checkpoint store (defaults to the sync_state table)
        """
        self.client = client
        self.dispatcher = dispatcher
        self.config = config
        self.progress = progress or ProgressStore()
        self.metrics = PollerMetrics(history_size=config.metrics_history_size)

        self._checkpoint: Optional[int] = None
        self._poll_lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._last_poll_time: Optional[datetime] = None

        logger.info(
            "poller.initialized",
            source=self.client.get_source_name(),
            module_address=config.module_address,
            poll_interval_seconds=config.poll_interval_seconds,
            batch_size=config.batch_size,
        )

    @property
    def last_version(self) -> Optional[int]:
        """Last fully processed version, None until resolved."""
        return self._checkpoint

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """
        Resolve the starting checkpoint and launch the polling loop.

        Raises:
            LedgerAPIError: If no checkpoint is stored and the ledger tip
                cannot be read
        """
        if self._running:
            logger.warning("poller.already_running")
            return

        await self.resolve_checkpoint()

        self._stop_event.clear()
        self._running = True
        self._task = asyncio.create_task(self._polling_loop())
        logger.info(
            "poller.started",
            version=self._checkpoint,
            interval_seconds=self.config.poll_interval_seconds,
        )

    async def stop(self):
        """Stop the loop once the in-flight pass, if any, has finished."""
        if not self._running:
            logger.debug("poller.not_running")
            return

        logger.info("poller.stopping")
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None
        self._running = False
        logger.info("poller.stopped", version=self._checkpoint)

    async def resolve_checkpoint(self) -> int:
        """
        Determine where polling resumes.

        Order of precedence: the stored checkpoint, the configured start
        version, then the current ledger tip. Starting from the tip skips
        history, so the gap is logged and the new checkpoint persisted
        immediately.

        Returns:
            The resolved checkpoint
        """
        if self._checkpoint is not None:
            return self._checkpoint

        stored = await self.progress.load()
        if stored is not None:
            self._checkpoint = stored
            logger.info("poller.checkpoint_loaded", version=stored)
            return stored

        if self.config.start_version is not None:
            # The checkpoint is the last processed version
            self._checkpoint = self.config.start_version - 1
            logger.info(
                "poller.checkpoint_from_config",
                first_version=self.config.start_version,
                version=self._checkpoint,
            )
            return self._checkpoint

        latest = await self.client.get_latest_version()
        logger.warning(
            "poller.checkpoint_missing_starting_at_tip",
            version=latest,
            skipped_from=0,
            skipped_to=latest,
        )
        self._checkpoint = latest
        await self._persist_checkpoint(latest)
        return latest

    async def _polling_loop(self):
        """Main polling loop: one pass per interval until stopped."""
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.config.poll_interval_seconds
                )
                break
            except asyncio.TimeoutError:
                pass

            if not self.config.enabled:
                logger.debug("poller.disabled_skipping")
                continue

            try:
                await self.poll_once()
            except Exception as e:
                logger.error(
                    "poller.loop_error",
                    error=str(e),
                    error_type=type(e).__name__,
                    exc_info=True,
                )

    async def poll_once(self) -> Dict[str, Any]:
        """
        Execute a single polling pass.

        Returns:
            Dictionary with the version range, counts and final status
        """
        async with self._poll_lock:
            return await self._poll()

    async def _poll(self) -> Dict[str, Any]:
        source = self.client.get_source_name()
        run_id = self.metrics.start_run(source=source, from_version=self._checkpoint)
        logger.info("poll.started", run_id=run_id, version=self._checkpoint)

        try:
            checkpoint = await self.resolve_checkpoint()
            latest = await self._timed(self.client.get_latest_version())
        except Exception as e:
            return self._fail(run_id, e, None)

        self.metrics.record_latest_version(latest)

        if latest <= checkpoint:
            logger.debug("poll.no_new_versions", run_id=run_id, latest=latest)
            return self._finish(run_id, PollStatus.SKIPPED, checkpoint, latest)

        next_start = checkpoint + 1
        applied_through = checkpoint
        failed_transactions = 0

        while next_start <= latest:
            limit = min(self.config.batch_size, latest - next_start + 1)
            try:
                page = await self._timed(
                    self.client.fetch_transactions(next_start, limit)
                )
            except Exception as e:
                await self._advance(applied_through)
                return self._fail(run_id, e, latest)

            batch = self._in_range(page, next_start, latest)
            self.metrics.record_batch(len(batch))
            logger.debug(
                "poll.batch_fetched",
                run_id=run_id,
                start=next_start,
                limit=limit,
                count=len(batch),
            )
            if not batch:
                # The whole requested range counts as applied
                logger.warning(
                    "poll.empty_page",
                    run_id=run_id,
                    start=next_start,
                    end=next_start + limit - 1,
                    latest=latest,
                )

            for tx in batch:
                if not await self._apply(tx):
                    failed_transactions += 1

            # Short pages only cover the versions they returned
            next_start = batch[-1].version + 1 if batch else next_start + limit
            applied_through = min(next_start - 1, latest)

        await self._advance(latest)

        status = PollStatus.PARTIAL if failed_transactions else PollStatus.SUCCESS
        return self._finish(run_id, status, checkpoint, latest)

    async def _apply(self, tx: LedgerTransaction) -> bool:
        """Dispatch one transaction; False if any part of it failed."""
        try:
            result = await self.dispatcher.dispatch(tx)
        except Exception as e:
            logger.error(
                "poll.transaction_failed",
                version=tx.version,
                tx_hash=tx.hash,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.metrics.record_error(f"tx {tx.version}: {e}")
            self.metrics.record_transaction(failed=True)
            return False

        failed = result.failed > 0
        if failed:
            self.metrics.record_error(
                f"tx {tx.version}: {result.failed} handler error(s)"
            )
        self.metrics.record_transaction(
            handled=result.handled,
            failed_events=result.failed,
            ignored=result.ignored,
            failed=failed,
        )
        return not failed

    @staticmethod
    def _in_range(
        page: List[LedgerTransaction], start: int, end: int
    ) -> List[LedgerTransaction]:
        return sorted(
            (tx for tx in page if start <= tx.version <= end),
            key=lambda tx: tx.version,
        )

    async def _timed(self, call):
        api_start = time.perf_counter()
        try:
            return await call
        finally:
            self.metrics.record_api_call(time.perf_counter() - api_start)

    async def _advance(self, version: int):
        """Move the checkpoint forward (never backward) and persist it."""
        if self._checkpoint is not None and version <= self._checkpoint:
            return
        self._checkpoint = version
        await self._persist_checkpoint(version)

    async def _persist_checkpoint(self, version: int):
        try:
            await self.progress.save(version)
        except Exception as e:
            # In-memory checkpoint stays advanced; a restart replays at most
            # the unsaved range, which the handlers absorb.
            logger.error(
                "poll.checkpoint_persist_failed",
                version=version,
                error=str(e),
                error_type=type(e).__name__,
            )
            self.metrics.record_error(f"checkpoint persist failed: {e}")

    def _finish(
        self,
        run_id: str,
        status: PollStatus,
        from_version: int,
        latest: int,
    ) -> Dict[str, Any]:
        self._last_poll_time = datetime.now(timezone.utc)
        run = self.metrics.end_run(status, to_version=self._checkpoint)
        result = {
            "run_id": run_id,
            "status": status.value,
            "from_version": from_version,
            "to_version": self._checkpoint,
            "latest_version": latest,
            "transactions_fetched": run.transactions_fetched if run else 0,
            "transactions_processed": run.transactions_processed if run else 0,
            "transactions_ignored": run.transactions_ignored if run else 0,
            "transactions_failed": run.transactions_failed if run else 0,
            "empty_batches": run.empty_batches if run else 0,
            "events_handled": run.events_handled if run else 0,
            "events_failed": run.events_failed if run else 0,
            "duration_seconds": run.duration_seconds if run else 0,
        }
        log = logger.info if status != PollStatus.SKIPPED else logger.debug
        log(
            "poll.completed",
            run_id=run_id,
            status=status.value,
            from_version=from_version,
            to_version=self._checkpoint,
            fetched=result["transactions_fetched"],
            events_handled=result["events_handled"],
            failed=result["transactions_failed"],
            duration_seconds=result["duration_seconds"],
        )
        return result

    def _fail(
        self, run_id: str, error: Exception, latest: Optional[int]
    ) -> Dict[str, Any]:
        logger.error(
            "poll.failed",
            run_id=run_id,
            version=self._checkpoint,
            latest=latest,
            error=str(error),
            error_type=type(error).__name__,
        )
        self.metrics.record_error(str(error))
        self._last_poll_time = datetime.now(timezone.utc)
        self.metrics.end_run(PollStatus.FAILED, to_version=self._checkpoint)
        return {
            "run_id": run_id,
            "status": PollStatus.FAILED.value,
            "to_version": self._checkpoint,
            "latest_version": latest,
            "error": str(error),
        }

    def get_status(self) -> Dict[str, Any]:
        """
        Get current poller status.

        Returns:
            Status dictionary
        """
        current_run = self.metrics.get_current_run()
        last_run = self.metrics.get_last_run()
        return {
            "running": self._running,
            "enabled": self.config.enabled,
            "last_version": self._checkpoint,
            "last_poll_time": (
                self._last_poll_time.isoformat() if self._last_poll_time else None
            ),
            "current_run": current_run.to_dict() if current_run else None,
            "last_run": last_run.to_dict() if last_run else None,
            "metrics_24h": self.metrics.get_aggregate_metrics(hours=24).to_dict(),
            "success_rate_24h": self.metrics.get_success_rate(hours=24),
            "config": {
                "poll_interval_seconds": self.config.poll_interval_seconds,
                "batch_size": self.config.batch_size,
                "module_address": self.config.module_address,
                "source": self.client.get_source_name(),
            },
        }

    def get_metrics(self, hours: Optional[int] = None) -> Dict[str, Any]:
        """
        Get aggregate metrics.

        Args:
            hours: Limit to last N hours (None = all history)
        """
        aggregate = self.metrics.get_aggregate_metrics(hours)
        return {
            "enabled": self.config.enabled,
            "aggregate": aggregate.to_dict(),
            "success_rate": self.metrics.get_success_rate(hours),
            "recent_runs": [r.to_dict() for r in self.metrics.get_history(limit=10)],
        }


# Global poller instance, installed by the application lifespan
_poller_instance: Optional[LedgerPoller] = None


def set_poller(poller: Optional[LedgerPoller]) -> None:
    global _poller_instance
    _poller_instance = poller


def get_poller() -> LedgerPoller:
    """
    Get the global poller instance.

    Raises:
        RuntimeError: If the pipeline has not been built yet
    """
    if _poller_instance is None:
        raise RuntimeError("Ledger poller is not initialized")
    return _poller_instance
