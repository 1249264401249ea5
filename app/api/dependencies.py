"""FastAPI dependencies for the research API."""

from collections.abc import AsyncGenerator

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.base import get_default_session_factory
from app.services.research import ResearchService, research_service_scope
from app.services.scrapers import ScraperRegistry, get_registry


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with get_default_session_factory()() as session:
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
        await client.aclose()


def get_scraper_registry() -> ScraperRegistry:
    """Get the race registry dependency."""
    return get_registry()


async def get_research_service(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
) -> AsyncGenerator[ResearchService, None]:
    """Get a research service scoped to the request."""
    async with research_service_scope(db, redis_client) as service:
        yield service
