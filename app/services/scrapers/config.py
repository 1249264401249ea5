"""Race site configuration.

Each supported race is one entry in races.yaml, validated into a
RaceSiteConfig. The config names the results platform and carries the
platform-specific identifiers a scraper needs for a given year.
"""

import calendar
from datetime import date, timedelta
from typing import Any

import structlog
from pydantic import BaseModel, Field, field_validator

from app.config import get_settings

logger = structlog.get_logger(__name__)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


class RaceDayRule(BaseModel):
    """Nth weekday of a month, used as the approximate race date."""

    month: int = Field(ge=1, le=12)
    weekday: str
    nth: int = Field(default=1, description="1-based; -1 means the last one")

    @field_validator("weekday")
    @classmethod
    def _known_weekday(cls, value: str) -> str:
        value = value.lower()
        if value not in WEEKDAYS:
            raise ValueError(f"Unknown weekday: {value}")
        return value

    @field_validator("nth")
    @classmethod
    def _valid_nth(cls, value: int) -> int:
        if value == 0 or value < -1 or value > 5:
            raise ValueError("nth must be 1..5 or -1")
        return value

    def date_for(self, year: int) -> date:
        """Compute the rule's date in the given year."""
        weekday = WEEKDAYS.index(self.weekday)

        if self.nth == -1:
            last_day = date(year, self.month, calendar.monthrange(year, self.month)[1])
            return last_day - timedelta(days=(last_day.weekday() - weekday) % 7)

        first_day = date(year, self.month, 1)
        offset = (weekday - first_day.weekday()) % 7
        return first_day + timedelta(days=offset + 7 * (self.nth - 1))


class RaceSiteConfig(BaseModel):
    """One supported race and how to reach its results."""

    race_name: str
    platform: str
    tag: str | None = None
    location: str
    event_types: list[str] = Field(default_factory=lambda: ["Marathon"])
    default_event_type: str = "Marathon"
    distance_miles: float = 26.2
    aliases: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    keyword_requires_marathon: bool = True
    race_day: RaceDayRule

    # Platform-specific identifiers ("{year}" is substituted)
    event_code_pattern: str | None = None
    base_url_pattern: str | None = None
    event_code: str | None = None
    event_prefix: str | None = None
    app_id: str | None = None
    app_token: str | None = None
    race_id_pattern: str | None = None
    race_id: str | None = None
    parse_mode: str | None = None
    default_event_id: str | None = None

    # Per-year result sets: year -> event key -> site id
    event_ids: dict[int, dict[str, str]] = Field(default_factory=dict)
    event_search_order: list[str] = Field(default_factory=lambda: ["marathon"])
    event_labels: dict[str, str] = Field(default_factory=dict)

    @field_validator("race_id", "default_event_id", mode="before")
    @classmethod
    def _id_as_text(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("event_ids", mode="before")
    @classmethod
    def _event_ids_as_text(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        return {
            year: {key: str(site_id) for key, site_id in (events or {}).items()}
            for year, events in value.items()
        }

    @field_validator("keywords")
    @classmethod
    def _lowercase_keywords(cls, value: list[str]) -> list[str]:
        return [keyword.lower().strip() for keyword in value]

    @property
    def label(self) -> str:
        return self.tag or self.race_name

    def fallback_race_date(self, year: int) -> date:
        """Approximate race date when the site does not publish one."""
        return self.race_day.date_for(year)

    def for_year(self, pattern: str | None, year: int) -> str | None:
        if pattern is None:
            return None
        return pattern.replace("{year}", str(year))

    def events_for_year(self, year: int) -> list[tuple[str, str]]:
        """(event label, site id) pairs for a year, in search order."""
        year_ids = self.event_ids.get(year) or {}
        return [
            (self.event_labels.get(key, key), year_ids[key])
            for key in self.event_search_order
            if year_ids.get(key)
        ]


def parse_race_configs(raw_configs: list[dict[str, Any]]) -> list[RaceSiteConfig]:
    """Validate raw race entries."""
    return [RaceSiteConfig.model_validate(raw) for raw in raw_configs]


def load_race_configs() -> list[RaceSiteConfig]:
    """Load and validate the race site table from settings."""
    settings = get_settings()
    configs = parse_race_configs(settings.load_races_config())
    logger.debug(
        "race_configs_loaded",
        path=str(settings.races_config_path),
        count=len(configs),
    )
    return configs
