"""LeagueSync FastAPI application.

Matchup reconciliation and standings synchronization for a multi-conference
fantasy league. JSON API only.
"""

from contextlib import asynccontextmanager

import redis.asyncio as redis
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from leaguesync import __version__
from leaguesync.api.routes import admin, health, matchups, standings, sync
from leaguesync.config import get_league_config, get_settings
from leaguesync.models.base import async_session_factory
from leaguesync.services.sleeper_client import SleeperClient
from leaguesync.services.store.sql import sql_store_factory
from leaguesync.services.sync import SyncPipeline, SyncStateStore, WeeklySyncScheduler

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler. Owns the weekly sync scheduler."""
    logger.info("starting_leaguesync", version=__version__)
    app.state.scheduler = None
    redis_client = redis.from_url(settings.redis_url)
    sleeper = SleeperClient(redis_client=redis_client)

    if settings.sync_autostart:
        config = get_league_config()
        pipeline = SyncPipeline(
            store_factory=sql_store_factory(async_session_factory),
            provider=sleeper,
            rules=config.rules,
            max_concurrency=config.sync.max_concurrency,
        )
        scheduler = WeeklySyncScheduler(
            pipeline,
            state_store=SyncStateStore(redis_client, settings.sync_state_key),
            defaults=config.sync,
        )
        await scheduler.start()
        app.state.scheduler = scheduler

    try:
        yield
    finally:
        if app.state.scheduler is not None:
            await app.state.scheduler.shutdown()
        await sleeper.close()
        await redis_client.close()
        logger.info("shutting_down_leaguesync")


# Create FastAPI application
app = FastAPI(
    title="LeagueSync",
    description="Matchup reconciliation and standings synchronization engine",
    version=__version__,
    lifespan=lifespan,
)

# Include API routers
app.include_router(health.router)
app.include_router(matchups.router)
app.include_router(standings.router)
app.include_router(admin.router)
app.include_router(sync.router)


@app.exception_handler(500)
async def server_error_handler(request: Request, exc):
    """Custom 500 handler."""
    logger.error("server_error", path=request.url.path, error=str(exc))
    return JSONResponse({"detail": "Internal server error"}, status_code=500)
