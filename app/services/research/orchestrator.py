"""Research orchestrator: two-tier cached lookup of race and runner results.

Tier 1 (race_editions): race date, location, event types, results URL and
weather, fetched once per (race name, year). A race edition with both date
and location is a cache hit and its scraper is never asked again.

Tier 2 (runner_research): bib, time and pace for one order in one race
edition. A 'found' row is a cache hit; ambiguous and not_found rows are
searched again when research is re-run.

The service is constructed per unit of work (one request, one task run)
around a database session. research_batch keeps a race cache that lives
for that one call only.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import get_settings
from app.models.domain import Order, OrderStatus, RaceEdition, ResearchStatus, RunnerResearch
from app.services.normalization import MARATHON_MILES
from app.services.research import resolution
from app.services.research.errors import (
    MissingRaceYear,
    MissingRunnerName,
    OrderNotFound,
    RaceEditionNotFound,
)
from app.services.research.repository import ResearchRepository
from app.services.research.resolution import UNSET, can_transition, is_cache_valid
from app.services.scrapers.base import CandidateMatch, RaceScraper
from app.services.scrapers.http import build_scraper_http
from app.services.scrapers.registry import ScraperRegistry, get_registry
from app.services.weather_client import WeatherClient, WeatherClientError

logger = structlog.get_logger(__name__)


@dataclass
class ResearchOutcome:
    """Result of researching one order."""

    race_edition: RaceEdition
    runner_research: RunnerResearch
    order: Order


@dataclass
class BatchItemResult:
    """Per-order outcome of research_batch."""

    order_number: str
    success: bool
    race_edition: RaceEdition | None = None
    runner_research: RunnerResearch | None = None
    error: str | None = None
    error_type: str | None = None


@dataclass
class SearchInputs:
    """Effective search values for an order."""

    race_name: str
    year: int
    runner_name: str

    @property
    def race_key(self) -> str:
        return f"{self.race_name}_{self.year}"


@dataclass
class BatchContext:
    """Race editions resolved during one research_batch call, keyed by race_key."""

    race_editions: dict[str, RaceEdition] = field(default_factory=dict)


class ResearchService:
    """
    Research entry points for the API and background tasks.

    Usage:
        service = ResearchService(session, registry=registry, weather_client=weather)
        outcome = await service.research_order("1234-1")
    """

    def __init__(
        self,
        session: AsyncSession | None = None,
        registry: ScraperRegistry | None = None,
        weather_client: WeatherClient | None = None,
        repository: ResearchRepository | None = None,
    ):
        """
        Initialize the service.

        Args:
            session: Database session (ignored when repository is given)
            registry: Scraper registry; defaults to the configured race table
            weather_client: Weather lookup; weather is skipped when None
            repository: Optional pre-built storage layer
        """
        if repository is None:
            if session is None:
                raise ValueError("ResearchService needs a session or a repository")
            repository = ResearchRepository(session)
        self.repository = repository
        self.registry = registry or get_registry()
        self.weather_client = weather_client
        self.settings = get_settings()

    # Entry points

    async def research_order(self, order_number: str) -> ResearchOutcome:
        """
        Research one order through both cache tiers.

        Raises:
            OrderNotFound: If the order does not exist
            MissingRunnerName: If no runner name is set or overridden
            MissingRaceYear: If no race year is set or overridden
            NoScraperAvailable: If the race is not supported
            ScraperFetchError: If the runner search fails
        """
        order = await self._load_order(order_number)
        return await self._research(order)

    async def research_batch(self, order_numbers: list[str]) -> list[BatchItemResult]:
        """
        Research orders one at a time, sharing race editions across the call.

        A failing order is recorded in its result item and the batch goes on.
        """
        context = BatchContext()
        results: list[BatchItemResult] = []

        logger.info("research_batch_started", count=len(order_numbers))

        for order_number in order_numbers:
            try:
                order = await self._load_order(order_number)
                outcome = await self._research(order, context)
            except Exception as e:
                if isinstance(e, SQLAlchemyError):
                    await self._recover_batch_session(context, results)
                logger.warning(
                    "research_batch_item_failed",
                    order_number=order_number,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                results.append(
                    BatchItemResult(
                        order_number=order_number,
                        success=False,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                )
                continue

            results.append(
                BatchItemResult(
                    order_number=order_number,
                    success=True,
                    race_edition=outcome.race_edition,
                    runner_research=outcome.runner_research,
                )
            )

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "research_batch_completed",
            count=len(results),
            succeeded=succeeded,
            failed=len(results) - succeeded,
            race_fetches=len(context.race_editions),
        )
        return results

    async def accept_match(
        self, order_number: str, candidate: CandidateMatch | dict[str, Any]
    ) -> RunnerResearch:
        """Accept an ambiguous candidate; see resolution.accept_match."""
        distance = await self._distance_for_latest_research(order_number)
        return await resolution.accept_match(
            self.repository, order_number, candidate, distance_miles=distance
        )

    async def update_overrides(
        self,
        order_number: str,
        race_name: Any = UNSET,
        year: Any = UNSET,
        runner_name: Any = UNSET,
    ) -> Order:
        return await resolution.update_overrides(
            self.repository,
            order_number,
            race_name=race_name,
            year=year,
            runner_name=runner_name,
        )

    async def fetch_weather_for_race_edition(self, race_edition_id: int) -> RaceEdition:
        """
        Fetch and store race-day weather once.

        No-op when weather was already attempted (weather_fetched_at set) or
        the race edition lacks a date or location. A failed lookup leaves
        weather_fetched_at empty so a later call tries again.

        Raises:
            RaceEditionNotFound: If the race edition does not exist
        """
        race_edition = await self.repository.get_race_edition_by_id(race_edition_id)
        if race_edition is None:
            raise RaceEditionNotFound(race_edition_id)

        log = logger.bind(race_edition_id=race_edition_id)

        if race_edition.weather_fetched_at is not None:
            log.debug("weather_already_fetched")
            return race_edition

        if race_edition.race_date is None or not race_edition.location:
            log.info("weather_skipped_missing_date_or_location")
            return race_edition

        if self.weather_client is None:
            log.debug("weather_client_not_configured")
            return race_edition

        try:
            report = await self.weather_client.get_historical_weather(
                race_edition.race_date, race_edition.location
            )
        except WeatherClientError as e:
            log.warning("weather_fetch_failed", error=str(e))
            return race_edition

        race_edition = await self.repository.update_race_edition(
            race_edition,
            weather_temp=report.temp,
            weather_condition=report.condition,
            weather_fetched_at=datetime.now(timezone.utc),
        )
        log.info("weather_stored", temp=report.temp, condition=report.condition)
        return race_edition

    # Cache checks

    async def has_race_edition_data(self, race_name: str, year: int) -> bool:
        race_edition = await self.repository.get_race_edition(race_name, year)
        return race_edition is not None and race_edition.is_cache_complete

    async def has_runner_data(self, order_number: str, race_edition_id: int) -> bool:
        research = await self.repository.get_runner_research(order_number, race_edition_id)
        return research is not None and is_cache_valid(research.research_status)

    # Tiers

    async def get_or_fetch_race_edition(
        self,
        race_name: str,
        year: int,
        scraper: RaceScraper | None = None,
    ) -> RaceEdition:
        """
        Tier 1: cached race edition, fetching race info on a miss.

        Triggers a weather fetch the first time the edition becomes
        cache-complete.
        """
        race_edition = await self.repository.get_race_edition(race_name, year)
        if race_edition is not None and race_edition.is_cache_complete:
            logger.debug(
                "race_edition_cache_hit",
                race_edition_id=race_edition.id,
                race_name=race_name,
                year=year,
            )
            return race_edition

        if scraper is None:
            scraper = self.registry.get_scraper_for_race(race_name, year)

        logger.info("race_edition_cache_miss", race_name=race_name, year=year, platform=scraper.platform)
        race_info = await scraper.get_race_info()

        race_edition, created = await self.repository.create_or_update_race_edition(
            race_name,
            year,
            race_date=race_info.race_date,
            location=race_info.location,
            event_types=race_info.event_types or [scraper.config.default_event_type],
            results_url=race_info.results_url,
            results_site_type=race_info.results_site_type,
        )
        logger.info(
            "race_edition_stored",
            race_edition_id=race_edition.id,
            race_name=race_name,
            year=year,
            created=created,
        )

        if race_edition.is_cache_complete and self.settings.weather_enabled:
            race_edition = await self.fetch_weather_for_race_edition(race_edition.id)

        return race_edition

    async def get_or_fetch_runner_research(
        self,
        order: Order,
        race_edition: RaceEdition,
        inputs: SearchInputs,
        scraper: RaceScraper | None = None,
    ) -> RunnerResearch:
        """
        Tier 2: cached runner research, searching on a miss.

        A found row is returned as is. Otherwise the effective runner name is
        searched and the row is created or updated; a found result moves the
        order to ready.
        """
        log = logger.bind(order_number=order.order_number, race_edition_id=race_edition.id)

        existing = await self.repository.get_runner_research(order.order_number, race_edition.id)
        previous_status = existing.research_status if existing else None

        if existing is not None and is_cache_valid(previous_status):
            log.debug("runner_research_cache_hit")
            return existing

        if existing is not None and existing.runner_name != inputs.runner_name:
            log.info(
                "runner_research_inputs_changed",
                previous_runner_name=existing.runner_name,
                runner_name=inputs.runner_name,
            )

        if scraper is None:
            scraper = self.registry.get_scraper_for_race(inputs.race_name, inputs.year)

        log.info("runner_search", runner_name=inputs.runner_name, platform=scraper.platform)
        result = await scraper.search_runner(inputs.runner_name)
        status = result.status

        if not can_transition(previous_status, status):
            raise ValueError(f"Illegal research transition {previous_status} -> {status.value}")

        research, _ = await self.repository.create_or_update_runner_research(
            order.order_number,
            race_edition.id,
            runner_name=inputs.runner_name,
            bib_number=result.bib_number,
            official_time=result.official_time,
            official_pace=result.official_pace,
            event_type=result.event_type,
            results_url=result.results_url,
            year_found=result.year_found,
            research_status=status.value,
            research_notes=result.research_notes,
            possible_matches=(
                [match.to_dict() for match in result.matches]
                if status == ResearchStatus.AMBIGUOUS
                else None
            ),
        )
        log.info(
            "runner_research_stored",
            previous_status=previous_status,
            research_status=status.value,
            candidates=len(result.matches),
        )

        if status == ResearchStatus.FOUND:
            await self.repository.update_order(
                order,
                status=OrderStatus.READY.value,
                researched_at=datetime.now(timezone.utc),
            )
            log.info("order_ready")

        return research

    # Internals

    async def _load_order(self, order_number: str) -> Order:
        order = await self.repository.get_order(order_number)
        if order is None:
            raise OrderNotFound(order_number)
        return order

    def _search_inputs(self, order: Order) -> SearchInputs:
        runner_name = (order.effective_runner_name or "").strip()
        if not runner_name:
            raise MissingRunnerName(order.order_number)

        year = order.effective_race_year
        if not year:
            raise MissingRaceYear(order.order_number)

        return SearchInputs(
            race_name=order.effective_race_name or "",
            year=year,
            runner_name=runner_name,
        )

    async def _research(
        self, order: Order, context: BatchContext | None = None
    ) -> ResearchOutcome:
        inputs = self._search_inputs(order)
        # Resolved before any network call so unsupported races fail fast
        scraper = self.registry.get_scraper_for_race(inputs.race_name, inputs.year)

        logger.info(
            "research_started",
            order_number=order.order_number,
            race_name=inputs.race_name,
            year=inputs.year,
            runner_name=inputs.runner_name,
        )

        race_edition = context.race_editions.get(inputs.race_key) if context else None
        if race_edition is None:
            race_edition = await self.get_or_fetch_race_edition(
                inputs.race_name, inputs.year, scraper
            )
            if context is not None:
                context.race_editions[inputs.race_key] = race_edition
        else:
            logger.debug(
                "race_edition_batch_cache_hit",
                order_number=order.order_number,
                race_edition_id=race_edition.id,
            )

        research = await self.get_or_fetch_runner_research(order, race_edition, inputs, scraper)
        return ResearchOutcome(race_edition=race_edition, runner_research=research, order=order)

    async def _recover_batch_session(
        self, context: BatchContext, results: list[BatchItemResult]
    ) -> None:
        """
        Roll back a failed database write and reload what the batch holds.

        A rollback expires every instance in the session. The race editions
        cached in the context and the rows of earlier results are committed,
        so they are refreshed here instead of lazy loading later.
        """
        await self.repository.rollback()

        held: dict[int, Any] = {}
        for race_edition in context.race_editions.values():
            held[id(race_edition)] = race_edition
        for item in results:
            for obj in (item.race_edition, item.runner_research):
                if obj is not None:
                    held[id(obj)] = obj

        await self.repository.refresh_all(held.values())
        logger.info("research_batch_session_recovered", reloaded=len(held))

    async def _distance_for_latest_research(self, order_number: str) -> float:
        research = await self.repository.get_latest_runner_research(order_number)
        if research is None:
            return MARATHON_MILES
        race_edition = await self.repository.get_race_edition_by_id(research.race_edition_id)
        if race_edition is None:
            return MARATHON_MILES
        config = self.registry.find_config(race_edition.race_name)
        return config.distance_miles if config else MARATHON_MILES


@asynccontextmanager
async def research_service_scope(
    session: AsyncSession,
    redis_client: Any = None,
) -> AsyncIterator[ResearchService]:
    """
    ResearchService with its HTTP and weather clients for one unit of work.

    Usage:
        async with research_service_scope(session, redis_client) as service:
            await service.research_batch(order_numbers)
    """
    settings = get_settings()
    async with build_scraper_http(redis_client) as http:
        weather_client = WeatherClient() if settings.weather_enabled else None
        try:
            yield ResearchService(
                session,
                registry=get_registry().with_http(http),
                weather_client=weather_client,
            )
        finally:
            if weather_client is not None:
                await weather_client.aclose()
