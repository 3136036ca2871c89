"""FastAPI application entry point — wires everything together.

Usage:
    python -m remindly.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI

from remindly.api.routes import router
from remindly.audit import log_event
from remindly.config import settings
from remindly.context import build_context
from remindly.db.engine import db_lifespan
from remindly.events import emit, start_event_system, stop_event_system, subscribe, unsubscribe
from remindly.schemas.events import EventType, SystemEvent

# ── Logging setup ────────────────────────────────────────────────────


def configure_logging(level: str, *, json_output: bool) -> None:
    """Route stdlib and structlog output to stdout. JSON lines in production."""
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        stream=sys.stdout,
    )
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
    )


configure_logging(settings.log_level, json_output=settings.is_production)
logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting Remindly (env=%s)", settings.environment)

    # 1. Local database + Redis
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system with the audit log subscriber
        subscribe(log_event)
        await start_event_system()

        # 3. Session context — one writer per process
        app.state.context = build_context()
        await emit(SystemEvent(event_type=EventType.SYSTEM_STARTUP, source_module="main"))

        try:
            yield
        finally:
            logger.info("Shutting down Remindly...")
            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            unsubscribe(log_event)

    logger.info("Remindly shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Remindly API",
    description="Client appointments with webhook-driven WhatsApp reminders",
    version="0.1.0",
    lifespan=lifespan,
)
app.include_router(router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "ok",
        "environment": settings.environment,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "remindly.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
