from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from fastapi import FastAPI, Query, Request

from ledger_indexer.core.config import get_settings
from ledger_indexer.core.log_buffer import get_log_buffer
from ledger_indexer.core.logging import configure_logging, request_id_middleware
from ledger_indexer.db.init import create_tables
from ledger_indexer.ledger.pipeline import build_pipeline
from ledger_indexer.ledger.poller import set_poller
from ledger_indexer.ledger.router import router as indexer_router

logger = structlog.get_logger()

settings = get_settings()
configure_logging(settings.ENV, buffer_size=settings.LOG_BUFFER_SIZE)

SERVICE_NAME = "ledger-indexer"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info(
        "app.starting",
        env=settings.ENV,
        network=settings.APTOS_NETWORK,
        module_address=settings.MODULE_ADDRESS,
    )

    await create_tables()

    pipeline = build_pipeline(settings)
    app.state.pipeline = pipeline
    set_poller(pipeline.poller)

    if settings.INDEXER_AUTOSTART:
        try:
            await pipeline.poller.start()
        except Exception as e:
            # Keep the HTTP surface up; POST /indexer/start retries
            logger.error(
                "app.poller_start_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
    else:
        logger.info("app.autostart_disabled", hint="POST /indexer/start")

    logger.info("app.started", last_version=pipeline.poller.last_version)

    yield

    logger.info("app.stopping")
    await pipeline.aclose()
    set_poller(None)
    app.state.pipeline = None
    logger.info("app.stopped", last_version=pipeline.poller.last_version)


app = FastAPI(title="Ledger Event Indexer", version="0.1.0", lifespan=lifespan)
app.middleware("http")(request_id_middleware)
app.include_router(indexer_router)


@app.get("/health")
async def health():
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "time": datetime.now(timezone.utc).isoformat(),
    }


@app.get("/status")
async def indexer_status(request: Request):
    """Running flag, last processed version and credential usage."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        return {"running": False, "last_version": None, "network": settings.APTOS_NETWORK}

    return {
        "running": pipeline.poller.running,
        "last_version": pipeline.poller.last_version,
        "network": settings.APTOS_NETWORK,
        "rpc_url": pipeline.rpc_url,
        "module_address": pipeline.config.module_address,
        "poller": pipeline.poller.get_status(),
        "rotator": pipeline.rotator.get_stats(),
        "notifier": pipeline.notifier.get_stats() if pipeline.notifier else None,
    }


@app.get("/logs")
async def recent_logs(limit: int = Query(default=100, ge=1, le=500)):
    buffer = get_log_buffer()
    entries = buffer.get_recent(limit) if buffer else []
    return {"count": len(entries), "logs": entries}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.INDEXER_PORT)
