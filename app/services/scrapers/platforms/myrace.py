"""MyRace.ai results platform (JSON API).

Races: California International Marathon.

Searching is two-stage: a name search returns candidate athletes, then the
official analysis endpoint returns the detail for a single match.
"""

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
from app.services.scrapers.errors import ScraperFetchError
from app.services.scrapers.http import ScraperHttp

logger = structlog.get_logger(__name__)

API_URL = "https://myrace.ai/api"
SITE_URL = "https://myrace.ai/races"


class MyRaceScraper:
    platform = "myrace"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        self.race_id = config.for_year(config.race_id_pattern, year)

    @property
    def results_url(self) -> str:
        return f"{SITE_URL}/{self.race_id}/results"

    async def get_race_info(self) -> RaceInfo:
        race_date = self.config.fallback_race_date(self.year)
        logger.info(
            "race_date_computed",
            race=self.config.label,
            year=self.year,
            race_date=race_date.isoformat(),
        )
        return RaceInfo(
            race_date=race_date,
            location=self.config.location,
            event_types=list(self.config.event_types),
            results_url=self.results_url,
            results_site_type=self.platform,
        )

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        logger.info("runner_search_started", race=self.config.label, year=self.year, runner=runner_name)

        data = await self.http.get_json(
            self.platform,
            f"{API_URL}/search-athletes",
            params={"raceId": self.race_id, "type": "name", "value": runner_name},
        )
        results = (data or {}).get("results") or []
        logger.info(
            "runner_search_results",
            race=self.config.label,
            total=len(results),
            total_count=(data or {}).get("totalCount"),
        )

        if not results:
            return not_found_result(self.year)

        matches = filter_name_matches(runner_name, results, lambda r: r.get("name") or "")
        if not matches:
            logger.info(
                "runner_no_exact_match",
                race=self.config.label,
                closest=[r.get("name") for r in results[:3]],
            )
            return not_found_result(self.year)

        if len(matches) > 1:
            return ambiguous_result(
                self.year,
                [
                    CandidateMatch(
                        name=m.get("name") or "",
                        bib=_str(m.get("bib")),
                        time=format_time(m.get("finishChipTime")),
                        event_type=self.config.default_event_type,
                    )
                    for m in matches
                ],
            )

        match = matches[0]
        athlete = await self._fetch_athlete(match.get("pid"))
        if athlete is None:
            logger.info("athlete_detail_unavailable", race=self.config.label, pid=match.get("pid"))
            return self._from_search_result(match)

        logger.info("runner_found", race=self.config.label, name=match.get("name"), bib=athlete.get("bib"))
        return found_result(
            self.year,
            bib_number=athlete.get("bib"),
            official_time=format_time(athlete.get("finishChipTime")),
            official_pace=format_pace(athlete.get("paceTime")),
            event_type=self.config.default_event_type,
            results_url=self.results_url,
            raw_data={
                "first_name": athlete.get("firstName"),
                "last_name": athlete.get("lastName"),
                "gender": athlete.get("gender"),
                "age": athlete.get("age"),
                "city": athlete.get("city"),
                "state": athlete.get("state"),
                "country": athlete.get("country"),
                "overall_rank": athlete.get("overallRank"),
                "gender_rank": athlete.get("genderRank"),
                "age_group_rank": athlete.get("ageGroupRank"),
                "age_group": athlete.get("ageGroupName"),
                "total_athletes": athlete.get("totalAthletes"),
                "gun_time": athlete.get("finishGunTime"),
                "chip_time": athlete.get("finishChipTime"),
            },
        )

    async def _fetch_athlete(self, pid: Any) -> dict[str, Any] | None:
        if not pid:
            return None
        try:
            data = await self.http.get_json(
                self.platform,
                f"{API_URL}/athlete-analysis-official",
                params={"raceId": self.race_id, "pid": pid},
            )
        except ScraperFetchError as e:
            logger.warning("athlete_detail_failed", pid=pid, error=str(e))
            return None
        athlete = (data or {}).get("athlete") if isinstance(data, dict) else None
        return athlete or None

    def _from_search_result(self, match: dict[str, Any]) -> RunnerSearchResult:
        chip_time = match.get("finishChipTime")
        return found_result(
            self.year,
            bib_number=match.get("bib"),
            official_time=format_time(chip_time),
            official_pace=format_pace(
                calculate_pace(normalize_time(chip_time), self.config.distance_miles)
            ),
            event_type=self.config.default_event_type,
            results_url=self.results_url,
            raw_data={
                "name": match.get("name"),
                "gender": match.get("gender"),
                "age": match.get("age"),
                "overall_rank": match.get("overallRank"),
                "total_athletes": match.get("totalAthletes"),
                "chip_time": chip_time,
            },
        )


def _str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None
