"""
Umzug Watcher API - FastAPI health server.
Exposes process status and watcher counters; the watcher itself runs in
the application lifespan.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from pydantic import BaseModel

from api.logging_config import logger
from core.error_handler import describe_error, recovery_action

VERSION = "1.0.0"


class HealthResponse(BaseModel):
    ready: bool
    isLoggedIn: bool
    lastTick: int
    acceptedTotal: int
    triedTotal: int
    errorsTotal: int
    lastAcceptKey: Optional[str] = None
    storageStateExists: bool


class StartupFailed(RuntimeError):
    """Raised from the lifespan when the bot could not be initialized."""


def create_app(bot, manage_lifecycle: bool = True) -> FastAPI:
    """
    Build the health API around a watcher bot.

    Args:
        bot: WatcherBot (anything with initialize/start/dispose/health/stats)
        manage_lifecycle: Initialize and start the bot in the app lifespan

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.startup_error = None
        if manage_lifecycle:
            logger.info("Starting Umzug watcher...")
            try:
                await bot.initialize()
            except Exception as e:
                action = recovery_action(e, startup=True)
                app.state.startup_error = describe_error(e)
                logger.error(f"Fatal during startup ({action.value}): {e}")
                await bot.dispose()
                raise StartupFailed(describe_error(e)) from e
            bot.start()

        yield

        if manage_lifecycle:
            logger.info("Shutting down Umzug watcher...")
            await bot.dispose()

    app = FastAPI(
        title="Umzug Watcher",
        description="Health and status of the listing watcher",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    app.state.bot = bot

    @app.get("/")
    async def root():
        """Short status document."""
        return {"status": "ok", "message": f"Umzug Watcher v{VERSION}", "health": "/health"}

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Process status and cumulative counters."""
        return bot.health()

    @app.get("/stats")
    async def stats():
        """Full stats snapshot including lastError and tick latency."""
        return bot.stats.get_summary()

    return app

