"""Celery tasks for race research.

Research is operator-initiated, so no periodic schedule is registered.
"""

from celery import Celery

from app.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "race_research",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "app.tasks.research",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    # Timezone
    timezone="UTC",
    enable_utc=True,
    # Task behavior
    task_track_started=True,
    task_time_limit=1800,  # batches run sequentially against slow sites
    task_soft_time_limit=1740,
    # Result expiration
    result_expires=3600,  # 1 hour
    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=2,
)
