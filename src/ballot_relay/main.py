# src/ballot_relay/main.py
"""Main entry point for the Ballot Relay application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ballot_relay.api.v1 import sync_router, votes_router
from ballot_relay.core.settings import settings
from ballot_relay.db.session import create_tables
from ballot_relay.services.runtime import get_relay, set_relay

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    create_tables()
    relay = get_relay()
    await relay.scheduler.start()
    app.state.relay = relay
    logger.info("Relay started (online=%s)", relay.engine.connectivity.online)
    try:
        yield
    finally:
        await relay.close()
        set_relay(None)
        logger.info("Relay stopped")


# Initialize FastAPI app
app = FastAPI(
    title="Ballot Relay API",
    description="Durable client-side vote queue with exactly-once delivery",
    version=settings.app_version,
    lifespan=lifespan,
)

app.include_router(votes_router, prefix="/api/v1")
app.include_router(sync_router, prefix="/api/v1")


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    configure_logging()
    uvicorn.run("ballot_relay.main:app", host="127.0.0.1", port=8000, reload=settings.debug)
