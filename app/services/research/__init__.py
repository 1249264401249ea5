"""Research orchestrator, storage layer and match resolution."""

from app.services.research.errors import (
    InvalidCandidate,
    InvalidOverride,
    MissingRaceYear,
    MissingRunnerName,
    NoScraperAvailable,
    OrderNotFound,
    RaceEditionNotFound,
    ResearchError,
    ResearchNotFound,
    ScraperFetchError,
)
from app.services.research.orchestrator import (
    BatchItemResult,
    ResearchOutcome,
    ResearchService,
    research_service_scope,
)
from app.services.research.repository import ResearchRepository
from app.services.research.resolution import (
    UNSET,
    accept_match,
    can_transition,
    is_cache_valid,
    update_overrides,
)

__all__ = [
    "UNSET",
    "BatchItemResult",
    "InvalidCandidate",
    "InvalidOverride",
    "MissingRaceYear",
    "MissingRunnerName",
    "NoScraperAvailable",
    "OrderNotFound",
    "RaceEditionNotFound",
    "ResearchError",
    "ResearchNotFound",
    "ResearchOutcome",
    "ResearchRepository",
    "ResearchService",
    "ScraperFetchError",
    "accept_match",
    "can_transition",
    "is_cache_valid",
    "research_service_scope",
    "update_overrides",
]
