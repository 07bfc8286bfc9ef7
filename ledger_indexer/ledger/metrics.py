"""
Ledger poller metrics and monitoring.

Tracks per-run version ranges, transaction and event counts, ledger call
latency, and aggregates them for the status and metrics endpoints.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class PollStatus(str, Enum):
    """Status of a polling run."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Range walked, some transactions failed
    FAILED = "failed"  # Ledger call failed, tick aborted
    SKIPPED = "skipped"  # Nothing new


@dataclass
class PollRunMetrics:
    """Metrics for a single polling run."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: PollStatus = PollStatus.SUCCESS

    # Version range
    from_version: Optional[int] = None
    to_version: Optional[int] = None
    latest_version: Optional[int] = None

    # Transaction and event counts
    batches: int = 0
    empty_batches: int = 0  # Pages that returned nothing for their range
    transactions_fetched: int = 0
    transactions_processed: int = 0
    transactions_ignored: int = 0
    transactions_failed: int = 0
    events_handled: int = 0
    events_failed: int = 0

    # Performance
    duration_seconds: float = 0.0
    api_calls: int = 0
    api_latency_seconds: float = 0.0

    errors: List[str] = field(default_factory=list)
    error_count: int = 0

    source: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["status"] = self.status.value
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across multiple poll runs."""

    total_runs: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    partial_runs: int = 0
    skipped_runs: int = 0

    total_transactions: int = 0
    total_events_handled: int = 0
    total_events_failed: int = 0
    total_errors: int = 0

    avg_duration_seconds: float = 0.0
    avg_api_latency_seconds: float = 0.0

    first_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ["first_run", "last_run", "last_success", "last_failure"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class PollerMetrics:
    """
    In-memory metrics tracker for the ledger poller.

    Tracks the current run and keeps a bounded history of finished runs.
    """

    def __init__(self, history_size: int = 100):
        """
        Initialize metrics tracker.

        Args:
            history_size: Number of recent runs to keep in memory
        """
        self.history_size = history_size
        self._current_run: Optional[PollRunMetrics] = None
        self._history: List[PollRunMetrics] = []
        self._run_counter = 0

    def start_run(self, source: str, from_version: Optional[int] = None) -> str:
        """
        Start tracking a new polling run.

        Args:
            source: Ledger source identifier
            from_version: Checkpoint at the start of the run

        Returns:
            Run ID for this polling attempt
        """
        self._run_counter += 1
        now = datetime.now(timezone.utc)
        run_id = f"poll-{now.strftime('%Y%m%d-%H%M%S')}-{self._run_counter}"

        self._current_run = PollRunMetrics(
            run_id=run_id,
            started_at=now,
            source=source,
            from_version=from_version,
        )
        return run_id

    def end_run(
        self, status: PollStatus = PollStatus.SUCCESS, to_version: Optional[int] = None
    ) -> Optional[PollRunMetrics]:
        """
        End the current polling run and move it into history.

        Args:
            status: Final status of the run
            to_version: Checkpoint at the end of the run

        Returns:
            The finished run, or None if no run was active
        """
        run = self._current_run
        if not run:
            return None

        run.ended_at = datetime.now(timezone.utc)
        run.status = status
        run.to_version = to_version
        run.duration_seconds = (run.ended_at - run.started_at).total_seconds()

        self._history.append(run)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

        self._current_run = None
        return run

    def record_api_call(self, latency_seconds: float):
        if self._current_run:
            self._current_run.api_calls += 1
            self._current_run.api_latency_seconds += latency_seconds

    def record_latest_version(self, version: int):
        if self._current_run:
            self._current_run.latest_version = version

    def record_batch(self, fetched: int):
        if self._current_run:
            self._current_run.batches += 1
            self._current_run.transactions_fetched += fetched
            if fetched == 0:
                self._current_run.empty_batches += 1

    def record_transaction(
        self, handled: int = 0, failed_events: int = 0, ignored: bool = False,
        failed: bool = False,
    ):
        """Record the outcome of one dispatched transaction."""
        run = self._current_run
        if not run:
            return
        run.events_handled += handled
        run.events_failed += failed_events
        if ignored:
            run.transactions_ignored += 1
        elif failed:
            run.transactions_failed += 1
        else:
            run.transactions_processed += 1

    def record_error(self, error: str):
        if self._current_run:
            self._current_run.errors.append(error)
            self._current_run.error_count += 1

    def get_current_run(self) -> Optional[PollRunMetrics]:
        return self._current_run

    def get_last_run(self) -> Optional[PollRunMetrics]:
        """Get metrics for the most recent completed run."""
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[PollRunMetrics]:
        """
        Get recent run history, newest first.

        Args:
            limit: Maximum number of runs to return (defaults to all)
        """
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """
        Get aggregated metrics across recent runs.

        Args:
            hours: Only include runs from the last N hours (None = all history)
        """
        runs = self._history
        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            runs = [r for r in runs if r.started_at >= cutoff]

        if not runs:
            return AggregateMetrics()

        metrics = AggregateMetrics(total_runs=len(runs))
        for run in runs:
            if run.status == PollStatus.SUCCESS:
                metrics.successful_runs += 1
            elif run.status == PollStatus.FAILED:
                metrics.failed_runs += 1
            elif run.status == PollStatus.PARTIAL:
                metrics.partial_runs += 1
            elif run.status == PollStatus.SKIPPED:
                metrics.skipped_runs += 1

        metrics.total_transactions = sum(r.transactions_fetched for r in runs)
        metrics.total_events_handled = sum(r.events_handled for r in runs)
        metrics.total_events_failed = sum(r.events_failed for r in runs)
        metrics.total_errors = sum(r.error_count for r in runs)

        metrics.avg_duration_seconds = (
            sum(r.duration_seconds for r in runs) / metrics.total_runs
        )
        metrics.avg_api_latency_seconds = (
            sum(r.api_latency_seconds for r in runs) / metrics.total_runs
        )

        metrics.first_run = runs[0].started_at
        metrics.last_run = runs[-1].started_at
        for run in reversed(runs):
            if run.status == PollStatus.SUCCESS and not metrics.last_success:
                metrics.last_success = run.started_at
            if run.status == PollStatus.FAILED and not metrics.last_failure:
                metrics.last_failure = run.started_at
            if metrics.last_success and metrics.last_failure:
                break

        return metrics

    def get_success_rate(self, hours: Optional[int] = None) -> float:
        """
        Fraction of runs that did not fail (skipped runs count as healthy).

        Returns:
            Success rate as float (0.0 to 1.0)
        """
        agg = self.get_aggregate_metrics(hours)
        if agg.total_runs == 0:
            return 0.0
        return (agg.total_runs - agg.failed_runs) / agg.total_runs
