"""Serialized views of research state, shared by the API and Celery tasks."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from app.models.domain import Order, RaceEdition, RunnerResearch


class OrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_number: str
    parent_order_number: str | None = None
    line_item_index: int
    channel: str
    race_name: str | None = None
    race_year: int | None = None
    runner_name: str | None = None
    race_name_override: str | None = None
    year_override: int | None = None
    runner_name_override: str | None = None
    effective_race_name: str | None = None
    effective_race_year: int | None = None
    effective_runner_name: str | None = None
    status: str
    researched_at: datetime | None = None


class RaceEditionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    race_name: str
    year: int
    race_date: date | None = None
    location: str | None = None
    event_types: list[str] | None = None
    results_url: str | None = None
    results_site_type: str | None = None
    weather_temp: str | None = None
    weather_condition: str | None = None
    weather_fetched_at: datetime | None = None


class CandidateOut(BaseModel):
    name: str
    bib: str | None = None
    time: str | None = None
    pace: str | None = None
    event_type: str | None = None
    results_url: str | None = None


class RunnerResearchOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    race_edition_id: int
    runner_name: str | None = None
    bib_number: str | None = None
    official_time: str | None = None
    official_pace: str | None = None
    event_type: str | None = None
    results_url: str | None = None
    year_found: int | None = None
    research_status: str
    research_notes: str | None = None
    possible_matches: list[CandidateOut] | None = None


class ResearchResultOut(BaseModel):
    race_edition: RaceEditionOut
    runner_research: RunnerResearchOut
    order: OrderOut


class BatchItemOut(BaseModel):
    order_number: str
    success: bool
    race_edition: RaceEditionOut | None = None
    runner_research: RunnerResearchOut | None = None
    error: str | None = None
    error_type: str | None = None


def order_out(order: Order) -> OrderOut:
    return OrderOut.model_validate(order)


def race_edition_out(race_edition: RaceEdition) -> RaceEditionOut:
    return RaceEditionOut.model_validate(race_edition)


def runner_research_out(research: RunnerResearch) -> RunnerResearchOut:
    return RunnerResearchOut.model_validate(research)


def batch_item_out(item: Any) -> BatchItemOut:
    """Serialize an orchestrator BatchItemResult."""
    return BatchItemOut(
        order_number=item.order_number,
        success=item.success,
        race_edition=race_edition_out(item.race_edition) if item.race_edition else None,
        runner_research=runner_research_out(item.runner_research) if item.runner_research else None,
        error=item.error,
        error_type=item.error_type,
    )
