"""Research API endpoints.

Thin layer over ResearchService: single-order research, batch research,
match acceptance and race edition weather refresh.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.api.dependencies import get_research_service, get_scraper_registry
from app.api.errors import http_error
from app.services.research import ResearchService
from app.services.research.schemas import (
    BatchItemOut,
    RaceEditionOut,
    ResearchResultOut,
    RunnerResearchOut,
    batch_item_out,
    order_out,
    race_edition_out,
    runner_research_out,
)
from app.services.scrapers import ScraperRegistry
from app.services.scrapers.base import CandidateMatch

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/research", tags=["research"])


class BatchRequest(BaseModel):
    order_numbers: list[str] = Field(min_length=1)


class BatchResponse(BaseModel):
    results: list[BatchItemOut]
    succeeded: int
    failed: int


class CandidateIn(BaseModel):
    """A candidate from an earlier ambiguous search."""

    name: str
    bib: str | None = None
    time: str | None = None
    pace: str | None = None
    event_type: str | None = None
    results_url: str | None = None


class SupportedRacesResponse(BaseModel):
    races: list[str]


@router.post("/orders/{order_number}", response_model=ResearchResultOut)
async def research_order(
    order_number: str,
    service: ResearchService = Depends(get_research_service),
):
    """Research one order through the race edition and runner caches."""
    try:
        outcome = await service.research_order(order_number)
    except Exception as e:
        raise http_error(e) from e

    return ResearchResultOut(
        race_edition=race_edition_out(outcome.race_edition),
        runner_research=runner_research_out(outcome.runner_research),
        order=order_out(outcome.order),
    )


@router.post("/batch", response_model=BatchResponse)
async def research_batch(
    request: BatchRequest,
    service: ResearchService = Depends(get_research_service),
):
    """
    Research several orders in one call.

    Orders are processed one at a time; each item reports its own success
    or error.
    """
    items = await service.research_batch(request.order_numbers)
    results = [batch_item_out(item) for item in items]
    succeeded = sum(1 for r in results if r.success)
    return BatchResponse(results=results, succeeded=succeeded, failed=len(results) - succeeded)


@router.post("/orders/{order_number}/accept-match", response_model=RunnerResearchOut)
async def accept_match(
    order_number: str,
    candidate: CandidateIn,
    service: ResearchService = Depends(get_research_service),
):
    """Accept one candidate of an ambiguous search. No results site is contacted."""
    try:
        research = await service.accept_match(
            order_number, CandidateMatch(**candidate.model_dump())
        )
    except Exception as e:
        raise http_error(e) from e
    return runner_research_out(research)


@router.post("/race-editions/{race_edition_id}/weather", response_model=RaceEditionOut)
async def refresh_weather(
    race_edition_id: int,
    service: ResearchService = Depends(get_research_service),
):
    """Fetch race-day weather if it has not been attempted yet."""
    try:
        race_edition = await service.fetch_weather_for_race_edition(race_edition_id)
    except Exception as e:
        raise http_error(e) from e
    return race_edition_out(race_edition)


@router.get("/supported-races", response_model=SupportedRacesResponse)
async def supported_races(registry: ScraperRegistry = Depends(get_scraper_registry)):
    """Races with automated research."""
    return SupportedRacesResponse(races=registry.get_supported_races())
