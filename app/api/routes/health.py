"""Liveness and readiness endpoints."""

from datetime import datetime, timezone

import redis.asyncio as redis
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.dependencies import get_db, get_redis, get_scraper_registry
from app.models.domain import Order, OrderStatus, ResearchStatus, RunnerResearch
from app.services.scrapers import ScraperRegistry

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime


class ReadyCheck(BaseModel):
    status: str
    message: str | None = None


class ReadyResponse(BaseModel):
    ready: bool
    checks: dict[str, ReadyCheck]
    pending_orders: int | None = None
    ambiguous_research: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health():
    """Liveness: the process is up."""
    return HealthResponse(status="healthy", timestamp=datetime.now(timezone.utc))


@router.get("/ready", response_model=ReadyResponse)
async def ready(
    db: AsyncSession = Depends(get_db),
    redis_client: redis.Redis = Depends(get_redis),
    registry: ScraperRegistry = Depends(get_scraper_registry),
):
    """
    Readiness of the research pipeline.

    The database and the race table are required. Redis only backs the
    scraper rate limit, which fails open, so an unreachable Redis is a
    warning. Also reports the research backlog: orders still pending and
    research rows waiting on an operator decision.
    """
    checks: dict[str, ReadyCheck] = {}
    all_ready = True
    pending_orders = None
    ambiguous_research = None

    try:
        pending_orders = await db.scalar(
            select(func.count()).select_from(Order).where(Order.status == OrderStatus.PENDING.value)
        )
        ambiguous_research = await db.scalar(
            select(func.count())
            .select_from(RunnerResearch)
            .where(RunnerResearch.research_status == ResearchStatus.AMBIGUOUS.value)
        )
        checks["db"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["db"] = ReadyCheck(status="error", message=str(e))
        all_ready = False

    try:
        await redis_client.ping()
        checks["redis"] = ReadyCheck(status="ok")
    except Exception as e:
        checks["redis"] = ReadyCheck(status="warning", message=str(e))

    races = registry.get_supported_races()
    if races:
        checks["races"] = ReadyCheck(status="ok", message=f"{len(races)} races configured")
    else:
        checks["races"] = ReadyCheck(status="error", message="No races configured")
        all_ready = False

    return ReadyResponse(
        ready=all_ready,
        checks=checks,
        pending_orders=pending_orders,
        ambiguous_research=ambiguous_research,
    )
