"""Mapping of research errors to HTTP responses."""

import structlog
from fastapi import HTTPException

from app.services.research.errors import (
    InvalidCandidate,
    InvalidOverride,
    MissingRaceYear,
    MissingRunnerName,
    NoScraperAvailable,
    OrderNotFound,
    RaceEditionNotFound,
    ResearchNotFound,
    ScraperFetchError,
)

logger = structlog.get_logger(__name__)

NOT_FOUND = (OrderNotFound, RaceEditionNotFound, ResearchNotFound)
BAD_REQUEST = (MissingRunnerName, MissingRaceYear, InvalidCandidate, InvalidOverride)


def http_error(e: Exception) -> HTTPException:
    """Translate a research or scraper error into an HTTPException."""
    if isinstance(e, NOT_FOUND):
        return HTTPException(status_code=404, detail=str(e))

    if isinstance(e, BAD_REQUEST):
        return HTTPException(status_code=400, detail=str(e))

    if isinstance(e, NoScraperAvailable):
        return HTTPException(
            status_code=400,
            detail={
                "error": str(e),
                "race_name": e.race_name,
                "supported_races": e.supported_races,
            },
        )

    if isinstance(e, ScraperFetchError):
        return HTTPException(
            status_code=502,
            detail={
                "error": str(e),
                "platform": e.platform,
                "retryable": e.retryable,
            },
        )

    logger.error("research_api_error", error=str(e), error_type=type(e).__name__)
    return HTTPException(status_code=500, detail=str(e))
