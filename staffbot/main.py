"""FastAPI application entry point: wires everything together.

Usage:
    python -m staffbot.main

Starts FastAPI (health check) + Telegram staff bot (long-polling) concurrently.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from telegram import Update

from staffbot.channels.telegram import create_telegram_app
from staffbot.config import settings
from staffbot.db.engine import db_lifespan
from staffbot.dialogue.orchestrator import DialogueOrchestrator, build_orchestrator
from staffbot.events.audit import audit_on_event
from staffbot.events.bus import emit, start_event_system, stop_event_system, subscribe
from staffbot.schemas.events import EventType, SystemEvent

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)


async def sweep_sessions(orchestrator: DialogueOrchestrator, interval: float, max_age: float) -> None:
    """Periodically drop sessions older than *max_age*, whatever their timers say."""
    while True:
        await asyncio.sleep(interval)
        orchestrator.cleanup_expired_sessions(max_age)


# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting staff bot (env=%s)", settings.environment)

    # 1. Database
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system + audit trail
        await start_event_system()
        subscribe(audit_on_event)
        logger.info("Event system started, audit subscriber registered")

        # 3. Dialogue layer
        orchestrator = build_orchestrator()
        app.state.orchestrator = orchestrator
        sweep_task = asyncio.create_task(
            sweep_sessions(
                orchestrator,
                settings.dialogue.session_sweep_interval,
                settings.dialogue.session_max_age,
            )
        )

        # 4. Telegram bot: create, initialize, and start polling
        telegram_app = create_telegram_app(orchestrator)
        await telegram_app.initialize()
        await telegram_app.start()
        await telegram_app.updater.start_polling(  # type: ignore[union-attr]
            allowed_updates=Update.ALL_TYPES,
            drop_pending_updates=True,
        )
        logger.info("Telegram bot polling started")
        await emit(SystemEvent(event_type=EventType.SYSTEM_STARTUP, source_module="main"))

        try:
            yield
        finally:
            # Shutdown in reverse order
            logger.info("Shutting down staff bot...")

            if telegram_app.updater:
                await telegram_app.updater.stop()
            await telegram_app.stop()
            await telegram_app.shutdown()
            logger.info("Telegram bot stopped")

            sweep_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await sweep_task
            orchestrator.clear()

            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            logger.info("Event system stopped")

    logger.info("Staff bot shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Staff Bot API",
    description="Pizzeria staff sign-in and courier problem-order dialogues",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check(request: Request) -> dict[str, str | int]:
    """Health check endpoint with active dialogue counts."""
    orchestrator: DialogueOrchestrator | None = getattr(request.app.state, "orchestrator", None)
    return {
        "status": "ok",
        "environment": settings.environment,
        "bot_name": settings.bot_name,
        "auth_sessions": len(orchestrator.auth_sessions) if orchestrator else 0,
        "courier_sessions": len(orchestrator.courier_sessions) if orchestrator else 0,
        "init_chat_sessions": len(orchestrator.init_chat_sessions) if orchestrator else 0,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "staffbot.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
