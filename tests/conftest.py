"""Pytest configuration and fixtures for race research tests."""

from datetime import date

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base, Order, OrderStatus
from app.services.scrapers.base import (
    CandidateMatch,
    RaceInfo,
    RunnerSearchResult,
    ambiguous_result,
    found_result,
    not_found_result,
)
from app.services.scrapers.config import RaceSiteConfig, load_race_configs
from app.services.scrapers.registry import ScraperRegistry


class CallCounter:
    """Network call counts shared by every FakeScraper a registry builds."""

    def __init__(self):
        self.race_info = 0
        self.search = 0
        self.searched_names: list[str] = []

    @property
    def total(self) -> int:
        return self.race_info + self.search


class FakeScraper:
    """
    Scraper double conforming to the scraper contract.

    Search outcomes are looked up by runner name in `results`; unknown names
    are not found.
    """

    platform = "fake"

    def __init__(
        self,
        year: int,
        config: RaceSiteConfig,
        counter: CallCounter,
        results: dict[str, RunnerSearchResult],
        race_info: RaceInfo | None = None,
        search_error: Exception | None = None,
    ):
        self.year = year
        self.config = config
        self.counter = counter
        self.results = results
        self._race_info = race_info
        self.search_error = search_error

    async def get_race_info(self) -> RaceInfo:
        self.counter.race_info += 1
        if self._race_info is not None:
            return self._race_info
        return RaceInfo(
            race_date=self.config.fallback_race_date(self.year),
            location=self.config.location,
            event_types=list(self.config.event_types),
            results_url=f"https://results.example.com/{self.year}",
            results_site_type=self.platform,
        )

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        self.counter.search += 1
        self.counter.searched_names.append(runner_name)
        if self.search_error is not None:
            raise self.search_error
        return self.results.get(runner_name) or not_found_result(self.year)


class FakeScraperKit:
    """A registry over the real race table whose scrapers are FakeScrapers."""

    def __init__(self, configs: list[RaceSiteConfig]):
        self.counter = CallCounter()
        self.results: dict[str, RunnerSearchResult] = {}
        self.race_info: RaceInfo | None = None
        self.search_error: Exception | None = None
        factory = self._build
        self.registry = ScraperRegistry(
            configs,
            platforms={config.platform: factory for config in configs},
        )

    def _build(self, year, config, http=None):
        return FakeScraper(
            year,
            config,
            self.counter,
            self.results,
            race_info=self.race_info,
            search_error=self.search_error,
        )

    def found(self, runner_name: str, year: int = 2024, **fields) -> None:
        defaults = {
            "bib_number": "1234",
            "official_time": "3:42:15",
            "official_pace": "8:29",
            "event_type": "Marathon",
            "results_url": "https://results.example.com/runner/1234",
        }
        defaults.update(fields)
        self.results[runner_name] = found_result(year, **defaults)

    def ambiguous(self, runner_name: str, candidates: list[CandidateMatch], year: int = 2024) -> None:
        self.results[runner_name] = ambiguous_result(year, candidates)


@pytest.fixture
def race_configs() -> list[RaceSiteConfig]:
    """The race table shipped in app/config/races.yaml."""
    return load_race_configs()


@pytest.fixture
def scraper_kit(race_configs) -> FakeScraperKit:
    return FakeScraperKit(race_configs)


@pytest.fixture
async def engine():
    """In-memory SQLite engine with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
def make_order(session):
    """Factory for persisted orders."""

    async def _make_order(
        order_number: str,
        race_name: str | None = "NYC Marathon",
        race_year: int | None = 2024,
        runner_name: str | None = "John Smith",
        **fields,
    ) -> Order:
        order = Order(
            order_number=order_number,
            channel=fields.pop("channel", "etsy"),
            race_name=race_name,
            race_year=race_year,
            runner_name=runner_name,
            status=fields.pop("status", OrderStatus.PENDING.value),
            **fields,
        )
        session.add(order)
        await session.commit()
        await session.refresh(order)
        return order

    return _make_order


@pytest.fixture
def nyc_2024_date() -> date:
    return date(2024, 11, 3)
