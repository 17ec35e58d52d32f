"""FastAPI dependencies for LeagueSync."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from leaguesync.config import get_settings
from leaguesync.models.base import async_session_factory
from leaguesync.services.sleeper_client import SleeperClient
from leaguesync.services.store.sql import SqlAlchemyStore
from leaguesync.services.sync import WeeklySyncScheduler


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.close()


async def get_store(db: AsyncSession = Depends(get_db)) -> SqlAlchemyStore:
    """Get a record store bound to the request's session."""
    return SqlAlchemyStore(db)


async def get_sleeper_client(
    redis_client: redis.Redis = Depends(get_redis),
) -> AsyncGenerator[SleeperClient, None]:
    """Get Sleeper client dependency."""
    async with SleeperClient(redis_client=redis_client) as client:
        yield client


def get_scheduler(request: Request) -> WeeklySyncScheduler:
    """Get the process-wide sync scheduler created in the lifespan."""
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        raise HTTPException(status_code=503, detail="Sync scheduler is not running")
    return scheduler
