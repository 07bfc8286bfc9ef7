"""
Ledger poller API routes.

Thin wrappers to trigger a pass, start or stop the loop, and read metrics.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, Field

from ledger_indexer.ledger.poller import LedgerPoller, get_poller

logger = structlog.get_logger()

router = APIRouter(prefix="/indexer", tags=["indexer"])


class PollTriggerResponse(BaseModel):
    """Response for manual poll trigger."""

    run_id: str
    status: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class MetricsResponse(BaseModel):
    """Response for metrics endpoint."""

    enabled: bool
    aggregate: Dict[str, Any]
    success_rate: float
    recent_runs: list[Dict[str, Any]]


def _require_poller() -> LedgerPoller:
    try:
        return get_poller()
    except RuntimeError:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Indexer pipeline is not initialized",
        )


@router.post("/poll", response_model=PollTriggerResponse)
async def trigger_poll():
    """
    Manually trigger a polling pass.

    Runs immediately, regardless of the configured interval. Waits for a
    scheduled pass that is already in flight.
    """
    poller = _require_poller()
    logger.info("indexer.manual_poll")
    result = await poller.poll_once()

    if result["status"] == "failed":
        message = f"Poll failed: {result.get('error', 'unknown error')}"
    else:
        message = f"Poll completed ({result['status']})"

    return PollTriggerResponse(
        run_id=result["run_id"],
        status=result["status"],
        message=message,
        details=result,
    )


@router.post("/start", status_code=status.HTTP_200_OK)
async def start_indexer():
    """Start the polling loop."""
    poller = _require_poller()
    if poller.running:
        return {"status": "already_running", "last_version": poller.last_version}

    try:
        await poller.start()
    except Exception as e:
        logger.error("indexer.start_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Could not start indexer: {e}",
        )
    return {"status": "started", "last_version": poller.last_version}


@router.post("/stop", status_code=status.HTTP_200_OK)
async def stop_indexer():
    """Stop the polling loop after the in-flight pass."""
    poller = _require_poller()
    if not poller.running:
        return {"status": "not_running", "last_version": poller.last_version}

    await poller.stop()
    return {"status": "stopped", "last_version": poller.last_version}


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(hours: Optional[int] = Query(default=None, ge=1)):
    """
    Get aggregate metrics for polling runs.

    Args:
        hours: Limit to last N hours (omit for all history)
    """
    return _require_poller().get_metrics(hours=hours)
