"""NYRR results platform (rmsprodapi.nyrr.org JSON API).

Races: NYC Marathon.
"""

from datetime import date, datetime
from typing import Any

import structlog

from app.services.normalization import calculate_pace, format_pace, format_time, normalize_time
from app.services.scrapers.base import (
    CandidateMatch,
    RaceInfo,
    RunnerSearchResult,
    ambiguous_result,
    filter_name_matches,
    found_result,
    not_found_result,
)
from app.services.scrapers.config import RaceSiteConfig
from app.services.scrapers.errors import RaceInfoUnavailable, ScraperFetchError
from app.services.scrapers.http import ScraperHttp

logger = structlog.get_logger(__name__)

API_URL = "https://rmsprodapi.nyrr.org/api/v2"
RESULTS_URL = "https://results.nyrr.org/event"


class NYRRScraper:
    """Search NYRR finishers through the public results API."""

    platform = "nyrr"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        self.event_code = config.for_year(config.event_code_pattern, year) or f"M{year}"

    @property
    def finishers_url(self) -> str:
        return f"{RESULTS_URL}/{self.event_code}/finishers"

    async def get_race_info(self) -> RaceInfo:
        try:
            race_date = await self._fetch_event_date()
            logger.info("race_date_from_api", race=self.config.label, year=self.year)
        except (ScraperFetchError, RaceInfoUnavailable) as e:
            race_date = self.config.fallback_race_date(self.year)
            logger.info(
                "race_date_fallback",
                race=self.config.label,
                year=self.year,
                race_date=race_date.isoformat(),
                reason=str(e),
            )

        return RaceInfo(
            race_date=race_date,
            location=self.config.location,
            event_types=list(self.config.event_types),
            results_url=self.finishers_url,
            results_site_type=self.platform,
        )

    async def _fetch_event_date(self) -> date:
        data = await self.http.post_json(
            self.platform,
            f"{API_URL}/events/details",
            {"eventCode": self.event_code},
        )
        details = data.get("eventDetails") if isinstance(data, dict) else None
        raw_date = details.get("eventDate") if isinstance(details, dict) else None
        if not raw_date or not isinstance(raw_date, str):
            raise RaceInfoUnavailable(f"No event date for {self.event_code}")
        try:
            return datetime.fromisoformat(raw_date.replace("Z", "+00:00")).date()
        except (ValueError, TypeError) as e:
            raise RaceInfoUnavailable(f"Unparseable event date: {raw_date}") from e

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        logger.info("runner_search_started", race=self.config.label, year=self.year, runner=runner_name)

        data = await self.http.post_json(
            self.platform,
            f"{API_URL}/runners/finishers-filter",
            {
                "eventCode": self.event_code,
                "searchString": runner_name,
                "handicap": None,
                "sortColumn": "overallTime",
                "sortDescending": False,
                "pageIndex": 1,
                "pageSize": 50,
            },
        )
        items = (data or {}).get("items") or []
        logger.info("runner_search_results", race=self.config.label, total=len(items))

        if not items:
            return not_found_result(self.year)

        matches = filter_name_matches(runner_name, items, _full_name)
        if not matches:
            return not_found_result(self.year)

        if len(matches) > 1:
            return ambiguous_result(
                self.year,
                [
                    CandidateMatch(
                        name=_full_name(m),
                        bib=_str(m.get("bib")),
                        time=format_time(normalize_time(m.get("overallTime"))),
                        event_type=self.config.default_event_type,
                    )
                    for m in matches
                ],
            )

        runner = matches[0]
        bib = _str(runner.get("bib"))
        results_url = f"{RESULTS_URL}/{self.event_code}/result/{bib}" if bib else self.finishers_url
        time = normalize_time(runner.get("overallTime"))
        pace = format_pace(runner.get("pace")) or format_pace(
            calculate_pace(time, self.config.distance_miles)
        )

        logger.info("runner_found", race=self.config.label, name=_full_name(runner), bib=bib)
        return found_result(
            self.year,
            bib_number=bib,
            official_time=format_time(time),
            official_pace=pace,
            event_type=self.config.default_event_type,
            results_url=results_url,
            raw_data=_raw(runner),
        )


def _full_name(item: dict[str, Any]) -> str:
    return f"{item.get('firstName') or ''} {item.get('lastName') or ''}".strip()


def _str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None


def _raw(runner: dict[str, Any]) -> dict[str, Any]:
    keys = (
        "firstName", "lastName", "gender", "age", "city", "stateProvince",
        "countryCode", "overallPlace", "genderPlace", "ageGradePercent",
    )
    return {key: runner.get(key) for key in keys}
