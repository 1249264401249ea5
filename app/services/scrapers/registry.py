"""Race name to scraper resolution.

Lookup order for a free-text race name:

1. exact alias
2. case-insensitive alias
3. keyword heuristic (first config in table order wins)

The keyword heuristic is a single rule applied to every config, see
keyword_match().
"""

from collections.abc import Mapping
from functools import lru_cache

import structlog

from app.services.scrapers.base import RaceScraper, ScraperFactory
from app.services.scrapers.config import RaceSiteConfig, load_race_configs
from app.services.scrapers.errors import NoScraperAvailable
from app.services.scrapers.http import ScraperHttp
from app.services.scrapers.platforms import PLATFORMS

logger = structlog.get_logger(__name__)


def keyword_match(config: RaceSiteConfig, normalized_name: str) -> bool:
    """
    Decide whether a lowercased race name refers to config's race by keyword.

    A keyword must appear in the name. Races with keyword_requires_marathon
    also need "marathon" in the name; the others accept "marathon" or a name
    that is exactly one of the keywords.
    """
    if not any(keyword in normalized_name for keyword in config.keywords):
        return False

    if "marathon" in normalized_name:
        return True

    if config.keyword_requires_marathon:
        return False

    return normalized_name in config.keywords


class ScraperRegistry:
    """Resolves race names to configured scrapers."""

    def __init__(
        self,
        configs: list[RaceSiteConfig],
        platforms: Mapping[str, ScraperFactory] | None = None,
        http: ScraperHttp | None = None,
    ):
        """
        Initialize the registry.

        Args:
            configs: Race site table, in lookup priority order
            platforms: platform identifier -> scraper factory
            http: Shared HTTP client handed to every scraper built

        Raises:
            ValueError: If a config names a platform with no factory
        """
        self.configs = list(configs)
        self.platforms = dict(PLATFORMS if platforms is None else platforms)
        self.http = http

        unknown = sorted({c.platform for c in self.configs} - set(self.platforms))
        if unknown:
            raise ValueError(f"Unknown platform(s) in race config: {', '.join(unknown)}")

        self._aliases: dict[str, RaceSiteConfig] = {}
        for config in self.configs:
            for alias in config.aliases:
                self._aliases.setdefault(alias, config)

    def find_config(self, race_name: str) -> RaceSiteConfig | None:
        """Resolve a race name to its config, or None."""
        if race_name in self._aliases:
            return self._aliases[race_name]

        normalized = race_name.lower().strip()
        for alias, config in self._aliases.items():
            if alias.lower() == normalized:
                return config

        for config in self.configs:
            if keyword_match(config, normalized):
                logger.debug("race_matched_by_keyword", race_name=race_name, race=config.race_name)
                return config

        return None

    def get_scraper_for_race(self, race_name: str, year: int) -> RaceScraper:
        """
        Build the scraper for a race edition.

        Raises:
            NoScraperAvailable: If no config matches the race name
        """
        config = self.find_config(race_name or "")
        if config is None:
            raise NoScraperAvailable(race_name, self.get_supported_races())

        factory = self.platforms[config.platform]
        return factory(year, config, self.http)

    def has_scraper_for_race(self, race_name: str) -> bool:
        return self.find_config(race_name or "") is not None

    def get_supported_races(self) -> list[str]:
        """Primary race names, in table order."""
        return list(dict.fromkeys(config.race_name for config in self.configs))

    def with_http(self, http: ScraperHttp | None) -> "ScraperRegistry":
        """Same table, scrapers built with a different HTTP client."""
        return ScraperRegistry(self.configs, self.platforms, http)


@lru_cache
def get_registry() -> ScraperRegistry:
    """Registry over the configured race table."""
    return ScraperRegistry(load_race_configs())


def get_scraper_for_race(race_name: str, year: int) -> RaceScraper:
    return get_registry().get_scraper_for_race(race_name, year)


def has_scraper_for_race(race_name: str) -> bool:
    return get_registry().has_scraper_for_race(race_name)


def get_supported_races() -> list[str]:
    return get_registry().get_supported_races()
