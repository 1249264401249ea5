"""Background research tasks.

Both tasks record a JobRun row. Failures are not retried: a failed research
item is reported in the task result and can be re-queued by an operator.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis
import structlog

from app.config import get_settings
from app.models.base import get_task_session
from app.models.domain import JobRun
from app.services.research import research_service_scope
from app.services.research.schemas import batch_item_out, race_edition_out
from app.tasks import celery_app

logger = structlog.get_logger(__name__)


def _run(coro):
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(bind=True, name="app.tasks.research.research_orders_task")
def research_orders_task(self, order_numbers: list[str]):
    """Celery task wrapper for batch research."""
    return _run(research_orders(order_numbers, self))


@celery_app.task(bind=True, name="app.tasks.research.refresh_race_weather_task")
def refresh_race_weather_task(self, race_edition_id: int):
    """Celery task wrapper for a race edition weather refresh."""
    return _run(refresh_race_weather(race_edition_id, self))


async def research_orders(order_numbers: list[str], task: Any = None) -> dict[str, Any]:
    """
    Research a batch of orders and record the run.

    Returns:
        {"results": [...], "succeeded": int, "failed": int}
    """
    settings = get_settings()
    started_at = datetime.now(timezone.utc)
    job_status = "running"
    error_message = None
    results: list[dict[str, Any]] = []

    async with get_task_session() as session:
        job_run = JobRun(
            job_name="research_orders",
            started_at=started_at,
            status="running",
            job_metadata={"order_numbers": order_numbers},
        )
        session.add(job_run)
        await session.commit()

        redis_client = redis.from_url(settings.redis_url)
        try:
            async with research_service_scope(session, redis_client) as service:
                items = await service.research_batch(order_numbers)
            results = [batch_item_out(item).model_dump(mode="json") for item in items]
            job_status = "success"
            logger.info(
                "research_task_complete",
                count=len(results),
                duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
            )
        except Exception as e:
            job_status = "failed"
            error_message = str(e)
            logger.error(
                "research_task_failed",
                error=str(e),
                task_id=task.request.id if task else None,
            )
            raise
        finally:
            await redis_client.aclose()
            succeeded = sum(1 for r in results if r["success"])
            job_run.completed_at = datetime.now(timezone.utc)
            job_run.status = job_status
            job_run.error_message = error_message
            job_run.records_processed = succeeded
            job_run.job_metadata = {
                "order_numbers": order_numbers,
                "succeeded": succeeded,
                "failed": len(results) - succeeded,
            }
            await session.commit()

    return {
        "results": results,
        "succeeded": succeeded,
        "failed": len(results) - succeeded,
    }


async def refresh_race_weather(race_edition_id: int, task: Any = None) -> dict[str, Any]:
    """Fetch weather for one race edition and record the run."""
    started_at = datetime.now(timezone.utc)
    job_status = "running"
    error_message = None
    race_edition = None

    async with get_task_session() as session:
        job_run = JobRun(
            job_name="refresh_race_weather",
            started_at=started_at,
            status="running",
            job_metadata={"race_edition_id": race_edition_id},
        )
        session.add(job_run)
        await session.commit()

        try:
            async with research_service_scope(session) as service:
                race_edition = await service.fetch_weather_for_race_edition(race_edition_id)
            job_status = "success"
            logger.info(
                "weather_task_complete",
                race_edition_id=race_edition_id,
                weather_fetched=race_edition.weather_fetched_at is not None,
            )
        except Exception as e:
            job_status = "failed"
            error_message = str(e)
            logger.error(
                "weather_task_failed",
                race_edition_id=race_edition_id,
                error=str(e),
                task_id=task.request.id if task else None,
            )
            raise
        finally:
            job_run.completed_at = datetime.now(timezone.utc)
            job_run.status = job_status
            job_run.error_message = error_message
            job_run.records_processed = 1 if job_status == "success" else 0
            await session.commit()

    return race_edition_out(race_edition).model_dump(mode="json")
