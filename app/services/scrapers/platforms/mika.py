"""Mika Timing results platform (server-rendered HTML list pages).

Races: Chicago Marathon.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime

import structlog
from bs4 import BeautifulSoup, Tag

from app.services.normalization import calculate_pace, format_pace, format_time, split_name
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

MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
COUNTRY_SUFFIX = re.compile(r"\s*\([A-Z]{2,3}\)\s*$")
CLOCK_TIME = re.compile(r"(\d{2}:\d{2}:\d{2})")
BARE_BIB = re.compile(r"^\d{4,6}$")
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


@dataclass
class MikaRow:
    name: str
    bib: str | None
    finish_time: str | None
    half_time: str | None = None
    overall_place: str | None = None
    gender_place: str | None = None
    division: str | None = None


class MikaTimingScraper:
    """Search a Mika Timing results site by first and last name."""

    platform = "mika"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        pattern = config.base_url_pattern or ""
        self.base_url = config.for_year(pattern, year).rstrip("/")
        self.event_code = config.event_code or "MAR"

    @property
    def list_url(self) -> str:
        return f"{self.base_url}/?pid=list"

    async def get_race_info(self) -> RaceInfo:
        try:
            html = await self.http.get_text(
                self.platform, self.list_url, headers={"Accept": "text/html"}
            )
            race_date = self.extract_race_date(html)
            logger.info("race_date_from_html", race=self.config.label, year=self.year)
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
            results_url=self.list_url,
            results_site_type=self.platform,
        )

    def extract_race_date(self, html: str) -> date:
        """Find "Month D, YEAR" for this edition's year in the page headings."""
        soup = BeautifulSoup(html, "html.parser")
        texts = [
            el.get_text(" ", strip=True)
            for el in soup.select("h1, h2, h3, .header, .headline, .content, .intro, #content")
        ]
        texts = [text for text in texts if text] or [soup.get_text(" ", strip=True)]

        pattern = re.compile(rf"({MONTHS})\s+(\d{{1,2}}),\s+{self.year}", re.IGNORECASE)
        for text in texts:
            match = pattern.search(text)
            if not match:
                continue
            try:
                return datetime.strptime(
                    f"{match.group(1).title()} {match.group(2)} {self.year}", "%B %d %Y"
                ).date()
            except ValueError:
                continue

        raise RaceInfoUnavailable(f"No race date on {self.list_url}")

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        logger.info("runner_search_started", race=self.config.label, year=self.year, runner=runner_name)

        first_name, last_name = split_name(runner_name)
        params = {
            "pid": "list",
            "search[name]": last_name,
            "search[firstname]": first_name,
            "event": self.event_code,
            "num_results": "50",
            "search_sort": "name",
        }
        response = await self.http.request(
            self.platform,
            "GET",
            f"{self.base_url}/",
            params=params,
            headers={"Accept": HTML_ACCEPT},
        )
        search_url = str(response.url)
        rows = parse_results_html(response.text)
        logger.info("runner_search_results", race=self.config.label, total=len(rows))

        if not rows:
            return not_found_result(self.year)

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
                        time=format_time(row.finish_time),
                        event_type=self.config.default_event_type,
                    )
                    for row in matches
                ],
            )

        runner = matches[0]
        logger.info("runner_found", race=self.config.label, name=runner.name, bib=runner.bib)
        return found_result(
            self.year,
            bib_number=runner.bib,
            official_time=format_time(runner.finish_time),
            official_pace=format_pace(
                calculate_pace(runner.finish_time, self.config.distance_miles)
            ),
            event_type=self.config.default_event_type,
            results_url=search_url,
            raw_data={
                "name": runner.name,
                "half_time": runner.half_time,
                "overall_place": runner.overall_place,
                "gender_place": runner.gender_place,
                "division": runner.division,
            },
        )


def parse_results_html(html: str) -> list[MikaRow]:
    """Parse result rows (li.list-group-item.row) out of a Mika list page."""
    soup = BeautifulSoup(html, "html.parser")
    rows = []

    for item in soup.select("li.list-group-item.row"):
        if "list-group-header" in (item.get("class") or []):
            continue
        if item.select_one(".alert"):
            continue

        row = _parse_row(item)
        if row is not None:
            rows.append(row)

    return rows


def _parse_row(item: Tag) -> MikaRow | None:
    link = item.select_one("h4.type-fullname a, .type-fullname a")
    full_name = link.get_text(strip=True) if link else ""
    if not full_name:
        return None

    full_name = COUNTRY_SUFFIX.sub("", full_name).strip()
    if "," in full_name:
        last, first = [part.strip() for part in full_name.split(",", 1)]
        full_name = f"{first} {last}"

    bib = None
    for field in item.select(".type-field"):
        text = field.get_text(" ", strip=True)
        if "BIB" in text.upper():
            bib = re.sub(r"BIB", "", text, flags=re.IGNORECASE).strip() or None
        elif BARE_BIB.match(text):
            bib = text

    half_time = None
    finish_time = None
    for field in item.select(".type-time"):
        text = field.get_text(" ", strip=True)
        label_el = field.select_one(".list-label")
        label = label_el.get_text(strip=True) if label_el else ""
        match = CLOCK_TIME.search(text)
        value = match.group(1) if match else None
        if label == "HALF" or "HALF" in text:
            half_time = value
        elif label == "Finish" or "Finish" in text:
            finish_time = value

    if not bib and not finish_time:
        return None

    division_el = item.select_one(".type-age_class")
    division = (
        re.sub(r"Division", "", division_el.get_text(" ", strip=True), flags=re.IGNORECASE).strip()
        if division_el
        else None
    )

    return MikaRow(
        name=full_name,
        bib=bib,
        finish_time=finish_time,
        half_time=half_time,
        overall_place=_first_text(item, ".type-place.place-secondary"),
        gender_place=_first_text(item, ".type-place.place-primary"),
        division=division or None,
    )


def _first_text(item: Tag, selector: str) -> str | None:
    el = item.select_one(selector)
    text = el.get_text(strip=True) if el else ""
    return text or None
