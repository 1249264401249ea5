"""MyChipTime results platform (server-rendered HTML).

Races: Austin Marathon, Philadelphia Marathon.

Two page layouts are in use, selected by the config's parse_mode:

- columns: searchResultGen.php, a fixed-column results table
- searchevent: searchevent.php, where columns vary and the name, bib and
  finish time are picked out of each row by shape
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime

import structlog
from bs4 import BeautifulSoup

from app.services.normalization import (
    calculate_pace,
    event_distance_miles,
    format_pace,
    format_time,
    normalize_time,
    split_name,
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
from app.services.scrapers.errors import RaceInfoUnavailable, ScraperFetchError
from app.services.scrapers.http import ScraperHttp

logger = structlog.get_logger(__name__)

SITE_URL = "https://www.mychiptime.com"
HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
MONTHS = "January|February|March|April|May|June|July|August|September|October|November|December"
SLASH_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
BIB = re.compile(r"^\d{2,6}$")
SHORT_BIB = re.compile(r"^\d{1,6}$")
CLOCK_TIME = re.compile(r"\d+:\d{2}:\d{2}")
SHORT_TIME = re.compile(r"\d+:\d{2}")

COLUMNS = "columns"
SEARCHEVENT = "searchevent"


@dataclass
class ChipTimeRow:
    name: str
    bib: str | None
    time: str | None
    pace: str | None = None
    gun_time: str | None = None
    city: str | None = None
    state: str | None = None
    division: str | None = None
    overall_place: str | None = None
    gender_place: str | None = None
    cells: list[str] = field(default_factory=list)


class MyChipTimeScraper:
    """Search a MyChipTime event by first and last name."""

    platform = "mychiptime"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        self.parse_mode = config.parse_mode or COLUMNS

    @property
    def event_id(self) -> str | None:
        """Event page shown as the results link: first event of the year, else the default."""
        events = self.config.events_for_year(self.year)
        if events:
            return events[0][1]
        return self.config.default_event_id

    def event_url(self, event_id: str | None) -> str:
        if event_id is None:
            return f"{SITE_URL}/searchevent.php"
        return f"{SITE_URL}/searchevent.php?id={event_id}"

    async def get_race_info(self) -> RaceInfo:
        event_id = self.event_id
        try:
            if event_id is None:
                raise RaceInfoUnavailable(f"No event id for {self.year}")
            html = await self.http.get_text(
                self.platform,
                f"{SITE_URL}/searchevent.php",
                params={"id": event_id},
                headers={"Accept": "text/html"},
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
            results_url=self.event_url(event_id),
            results_site_type=self.platform,
        )

    def extract_race_date(self, html: str) -> date:
        """Find MM/DD/YYYY, or "Month D, YEAR", for this edition's year."""
        soup = BeautifulSoup(html, "html.parser")
        page_text = soup.get_text(" ", strip=True)

        for month, day, year in SLASH_DATE.findall(page_text):
            if int(year) != self.year:
                continue
            try:
                return date(self.year, int(month), int(day))
            except ValueError:
                continue

        texts = [
            el.get_text(" ", strip=True)
            for el in soup.select("h1, h2, h3, .header, .headline, .content, .intro, #content")
        ]
        texts = [text for text in texts if text] or [page_text]

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

        raise RaceInfoUnavailable(f"No race date on MyChipTime event {self.event_id}")

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        logger.info("runner_search_started", race=self.config.label, year=self.year, runner=runner_name)

        events = self.config.events_for_year(self.year)
        if not events:
            logger.info("runner_search_no_events", race=self.config.label, year=self.year)
            return not_found_result(self.year, f"No results available for {self.year} yet")

        for event_type, event_id in events:
            result = await self._search_event(runner_name, event_type, event_id)
            if result.found or result.ambiguous:
                return result

        return not_found_result(self.year)

    async def _search_event(
        self, runner_name: str, event_type: str, event_id: str
    ) -> RunnerSearchResult:
        first_name, last_name = split_name(runner_name)
        if self.parse_mode == COLUMNS:
            path = "searchResultGen.php"
            params = {"eID": event_id, "fname": first_name, "lname": last_name}
        else:
            path = "searchevent.php"
            params = {"id": event_id, "lname": last_name.upper(), "fname": first_name.upper()}

        response = await self.http.request(
            self.platform,
            "GET",
            f"{SITE_URL}/{path}",
            params=params,
            headers={"Accept": HTML_ACCEPT, "Referer": self.event_url(event_id)},
        )
        search_url = str(response.url)
        if self.parse_mode == COLUMNS:
            rows = parse_columns_html(response.text)
        else:
            rows = parse_searchevent_html(response.text)
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
                        time=format_time(normalize_time(row.time)),
                        pace=format_pace(row.pace),
                        event_type=event_type,
                        results_url=search_url,
                    )
                    for row in matches
                ],
            )

        runner = matches[0]
        time = normalize_time(runner.time)
        distance = event_distance_miles(event_type, self.config.distance_miles)

        logger.info("runner_found", race=self.config.label, name=runner.name, bib=runner.bib)
        return found_result(
            self.year,
            bib_number=runner.bib,
            official_time=format_time(time),
            official_pace=format_pace(runner.pace) or format_pace(calculate_pace(time, distance)),
            event_type=event_type,
            results_url=search_url,
            raw_data={
                "name": runner.name,
                "gun_time": runner.gun_time,
                "city": runner.city,
                "state": runner.state,
                "division": runner.division,
                "overall_place": runner.overall_place,
                "gender_place": runner.gender_place,
                "cells": runner.cells or None,
            },
        )


def parse_columns_html(html: str) -> list[ChipTimeRow]:
    """Parse a searchResultGen.php results table (fixed column positions)."""
    if "0 results returned" in html:
        return []

    soup = BeautifulSoup(html, "html.parser")
    table = soup.select_one("table#myTable") or soup.find("table")
    if table is None:
        return []

    rows = []
    for tr in table.find_all("tr"):
        cells = [td.get_text(" ", strip=True) for td in tr.find_all("td")]
        if len(cells) < 14 or not cells[2].isdigit():
            continue

        rows.append(
            ChipTimeRow(
                name=f"{cells[3]} {cells[4]}".strip(),
                bib=cells[2],
                time=cells[1] or None,
                pace=_cell(cells, 17),
                gun_time=cells[0] or None,
                city=cells[7] or None,
                state=cells[8] or None,
                division=cells[11] or None,
                overall_place=cells[13] or None,
                gender_place=_cell(cells, 16),
            )
        )

    return rows


def parse_searchevent_html(html: str) -> list[ChipTimeRow]:
    """Parse a searchevent.php results table, identifying cells by shape."""
    soup = BeautifulSoup(html, "html.parser")
    table = soup.find("table")
    if table is None:
        return []

    rows = []
    for tr in table.find_all("tr")[1:]:
        tds = tr.find_all("td")
        if len(tds) < 4:
            continue
        cells = [text for text in (td.get_text(" ", strip=True) for td in tds) if text]
        if not cells:
            continue

        name = next((text for text in cells if len(text.split()) >= 2), cells[0])
        bib = _first(cells, BIB.match) or _first(cells, SHORT_BIB.match)
        finish = _first(cells, CLOCK_TIME.search) or _first(cells, SHORT_TIME.search)
        if name and (bib or finish):
            rows.append(ChipTimeRow(name=name, bib=bib, time=finish, cells=cells))

    return rows


def _cell(cells: list[str], index: int) -> str | None:
    return cells[index] or None if len(cells) > index else None


def _first(cells: list[str], test) -> str | None:
    return next((text for text in cells if test(text)), None)
