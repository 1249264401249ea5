"""RunSignUp results platform (server-rendered result set tables).

Races: Kiawah Island Marathon, Louisiana Marathon.

Each year publishes one result set per event (marathon, half). Result sets
are searched in the config's event order; the first event with a name match
decides the outcome, so two marathon John Smiths stay ambiguous even when
the half has a single one.
"""

from dataclasses import dataclass

import structlog
from bs4 import BeautifulSoup

from app.services.normalization import (
    calculate_pace,
    event_distance_miles,
    format_pace,
    format_time,
    normalize_time,
)
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
from app.services.scrapers.http import ScraperHttp

logger = structlog.get_logger(__name__)

SITE_URL = "https://runsignup.com"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"

# Place, Pace, Bib, Name, Gender, City, State, Country, Clock Time, Age
MIN_CELLS = 9


@dataclass
class RunSignUpRow:
    name: str
    bib: str | None
    chip_time: str | None
    pace: str | None
    place: str | None = None
    gender: str | None = None
    city: str | None = None
    state: str | None = None
    age: str | None = None


class RunSignUpScraper:
    """Search a RunSignUp race's result sets by runner name."""

    platform = "runsignup"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        self.race_id = config.race_id

    @property
    def results_url(self) -> str:
        return f"{SITE_URL}/Race/Results/{self.race_id}"

    def result_set_url(self, result_set_id: str) -> str:
        return f"{self.results_url}/{result_set_id}"

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

        events = self.config.events_for_year(self.year)
        if not events:
            logger.info("runner_search_no_result_sets", race=self.config.label, year=self.year)
            return not_found_result(self.year, f"Results not available for {self.year}")

        for event_type, result_set_id in events:
            result = await self._search_result_set(runner_name, event_type, result_set_id)
            if result.found or result.ambiguous:
                return result

        return not_found_result(self.year)

    async def _search_result_set(
        self, runner_name: str, event_type: str, result_set_id: str
    ) -> RunnerSearchResult:
        url = self.result_set_url(result_set_id)
        html = await self.http.get_text(
            self.platform,
            url,
            params={"search": runner_name, "page": "1", "num": "100"},
            headers={"Accept": HTML_ACCEPT},
        )
        rows = parse_results_table(html)
        logger.info(
            "runner_search_results",
            race=self.config.label,
            event_type=event_type,
            total=len(rows),
        )

        matches = filter_name_matches(runner_name, rows, lambda row: row.name)
        if not matches:
            return not_found_result(self.year)

        if len(matches) > 1:
            return ambiguous_result(
                self.year,
                [
                    CandidateMatch(
                        name=row.name,
                        bib=row.bib,
                        time=format_time(normalize_time(row.chip_time)),
                        pace=format_pace(row.pace),
                        event_type=event_type,
                        results_url=url,
                    )
                    for row in matches
                ],
            )

        runner = matches[0]
        time = normalize_time(runner.chip_time)
        distance = event_distance_miles(event_type, self.config.distance_miles)

        logger.info("runner_found", race=self.config.label, name=runner.name, bib=runner.bib)
        return found_result(
            self.year,
            bib_number=runner.bib,
            official_time=format_time(time),
            official_pace=format_pace(runner.pace) or format_pace(calculate_pace(time, distance)),
            event_type=event_type,
            results_url=url,
            raw_data={
                "name": runner.name,
                "gender": runner.gender,
                "age": runner.age,
                "city": runner.city,
                "state": runner.state,
                "place": runner.place,
            },
        )


def parse_results_table(html: str) -> list[RunSignUpRow]:
    """Parse the visible rows of a RunSignUp result set table."""
    soup = BeautifulSoup(html, "html.parser")
    rows = []

    for tr in soup.select("table tbody tr"):
        if "display:none" in (tr.get("style") or "").replace(" ", ""):
            continue

        cells = [" ".join(td.get_text(" ").split()) for td in tr.find_all("td")]
        if len(cells) < MIN_CELLS or not cells[3]:
            continue

        rows.append(
            RunSignUpRow(
                name=cells[3],
                bib=cells[2] or None,
                chip_time=cells[8] or None,
                pace=cells[1] or None,
                place=cells[0] or None,
                gender=cells[4] or None,
                city=cells[5] or None,
                state=cells[6] or None,
                age=cells[9] if len(cells) > 9 and cells[9] else None,
            )
        )

    return rows
