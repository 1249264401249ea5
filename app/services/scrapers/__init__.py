"""Results-site scrapers and the race registry."""

from app.services.scrapers.base import (
    CandidateMatch,
    RaceInfo,
    RaceScraper,
    RunnerSearchResult,
)
from app.services.scrapers.config import RaceDayRule, RaceSiteConfig, load_race_configs
from app.services.scrapers.errors import (
    NoScraperAvailable,
    RaceInfoUnavailable,
    ScraperError,
    ScraperFetchError,
)
from app.services.scrapers.http import ScraperHttp, build_scraper_http
from app.services.scrapers.registry import (
    ScraperRegistry,
    get_registry,
    get_scraper_for_race,
    get_supported_races,
    has_scraper_for_race,
)

__all__ = [
    "CandidateMatch",
    "NoScraperAvailable",
    "RaceDayRule",
    "RaceInfo",
    "RaceInfoUnavailable",
    "RaceScraper",
    "RaceSiteConfig",
    "RunnerSearchResult",
    "ScraperError",
    "ScraperFetchError",
    "ScraperHttp",
    "ScraperRegistry",
    "build_scraper_http",
    "get_registry",
    "get_scraper_for_race",
    "get_supported_races",
    "has_scraper_for_race",
    "load_race_configs",
]
