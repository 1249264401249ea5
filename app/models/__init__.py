"""Database models for the race research engine."""

from app.models.base import Base, get_db, get_session_factory, get_task_session
from app.models.domain import (
    JobRun,
    Order,
    OrderStatus,
    RaceEdition,
    ResearchStatus,
    RunnerResearch,
)

__all__ = [
    # Base
    "Base",
    "get_db",
    "get_session_factory",
    "get_task_session",
    # Domain models
    "Order",
    "OrderStatus",
    "RaceEdition",
    "ResearchStatus",
    "RunnerResearch",
    "JobRun",
]
