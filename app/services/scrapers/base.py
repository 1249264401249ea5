"""Scraper contract shared by every results platform.

A scraper is constructed for one race site config and one year and offers
two coroutines:

- get_race_info(): race-level metadata. Never fails; when the site cannot
  be read it degrades to the config's computed race day.
- search_runner(name): one of found / ambiguous / not_found.

Implementations filter candidates with names_match() and express times and
paces through app.services.normalization so results are comparable across
platforms. Platforms are plain classes selected through the registry's
dispatch table; there is no scraper base class.
"""

from collections.abc import Callable, Iterable
from dataclasses import asdict, dataclass, field
from datetime import date
from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from app.models.domain import ResearchStatus
from app.services.normalization import names_match
from app.services.scrapers.config import RaceSiteConfig

if TYPE_CHECKING:
    from app.services.scrapers.http import ScraperHttp

T = TypeVar("T")


@dataclass
class RaceInfo:
    """Race-level metadata, identical for every runner in a race edition."""

    race_date: date | None
    location: str | None
    event_types: list[str] = field(default_factory=list)
    results_url: str | None = None
    results_site_type: str | None = None


@dataclass
class CandidateMatch:
    """One name-matching row surfaced by an ambiguous search."""

    name: str
    bib: str | None = None
    time: str | None = None
    pace: str | None = None
    event_type: str | None = None
    results_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CandidateMatch":
        return cls(
            name=str(data.get("name") or ""),
            bib=_str_or_none(data.get("bib")),
            time=data.get("time"),
            pace=data.get("pace"),
            event_type=data.get("event_type"),
            results_url=data.get("results_url"),
        )

    @property
    def label(self) -> str:
        parts = [self.name]
        if self.bib:
            parts.append(f"bib {self.bib}")
        if self.time:
            parts.append(self.time)
        return ", ".join(parts)


@dataclass
class RunnerSearchResult:
    """Standardized outcome of search_runner()."""

    found: bool
    ambiguous: bool = False
    matches: list[CandidateMatch] = field(default_factory=list)
    bib_number: str | None = None
    official_time: str | None = None
    official_pace: str | None = None
    event_type: str | None = None
    results_url: str | None = None
    year_found: int | None = None
    research_notes: str | None = None
    raw_data: dict[str, Any] | None = None

    @property
    def status(self) -> ResearchStatus:
        if self.found:
            return ResearchStatus.FOUND
        if self.ambiguous:
            return ResearchStatus.AMBIGUOUS
        return ResearchStatus.NOT_FOUND


@runtime_checkable
class RaceScraper(Protocol):
    """Capability set every results platform implements."""

    platform: str
    year: int
    config: RaceSiteConfig

    async def get_race_info(self) -> RaceInfo: ...

    async def search_runner(self, runner_name: str) -> RunnerSearchResult: ...


ScraperFactory = Callable[[int, RaceSiteConfig, "ScraperHttp | None"], RaceScraper]


def found_result(
    year: int,
    bib_number: Any,
    official_time: str | None,
    official_pace: str | None,
    event_type: str | None,
    results_url: str | None = None,
    raw_data: dict[str, Any] | None = None,
) -> RunnerSearchResult:
    return RunnerSearchResult(
        found=True,
        bib_number=_str_or_none(bib_number),
        official_time=official_time,
        official_pace=official_pace,
        event_type=event_type,
        results_url=results_url,
        year_found=year,
        raw_data=raw_data,
    )


def not_found_result(year: int, notes: str = "Runner not found in results") -> RunnerSearchResult:
    return RunnerSearchResult(found=False, year_found=year, research_notes=notes)


def ambiguous_result(year: int, matches: list[CandidateMatch]) -> RunnerSearchResult:
    return RunnerSearchResult(
        found=False,
        ambiguous=True,
        matches=matches,
        year_found=year,
        research_notes=f"Multiple matches found: {len(matches)} runners with similar names",
    )


def filter_name_matches(
    runner_name: str,
    candidates: Iterable[T],
    name_of: Callable[[T], str],
) -> list[T]:
    """Keep candidates whose name matches the searched runner."""
    return [candidate for candidate in candidates if names_match(runner_name, name_of(candidate))]


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)
