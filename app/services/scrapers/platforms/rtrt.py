"""RTRT tracker platform (api.rtrt.me).

Races: Marine Corps Marathon.

The tracker API has no race-date endpoint; race info always uses the
configured race day.
"""

import re
from typing import Any

import structlog

from app.services.normalization import (
    calculate_pace,
    format_pace,
    format_time,
    normalize_time,
    round_time,
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
from app.services.scrapers.errors import ScraperFetchError
from app.services.scrapers.http import ScraperHttp

logger = structlog.get_logger(__name__)

API_URL = "https://api.rtrt.me"
TRACKER_URL = "https://track.rtrt.me/e"
PACE_UNITS = re.compile(r"\s*min/mile$", re.IGNORECASE)


class RTRTScraper:
    """Search RTRT tracker profiles and read the finish split."""

    platform = "rtrt"

    def __init__(self, year: int, config: RaceSiteConfig, http: ScraperHttp | None = None):
        self.year = year
        self.config = config
        self.http = http or ScraperHttp()
        self.event_id = f"{config.event_prefix}-{year}"

    @property
    def dashboard_url(self) -> str:
        return f"{TRACKER_URL}/{self.event_id}#/dashboard"

    def _auth_form(self) -> dict[str, str]:
        return {
            "appid": self.config.app_id or "",
            "token": self.config.app_token or "",
            "source": "webtracker",
        }

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
            results_url=self.dashboard_url,
            results_site_type=self.platform,
        )

    async def search_runner(self, runner_name: str) -> RunnerSearchResult:
        logger.info("runner_search_started", race=self.config.label, year=self.year, runner=runner_name)

        data = await self.http.post_form(
            self.platform,
            f"{API_URL}/events/{self.event_id}/profiles",
            {
                "max": "100",
                "total": "1",
                "failonmax": "1",
                **self._auth_form(),
                "search": runner_name,
                "module": "0",
            },
        )
        profiles = _list_of(data)
        logger.info("runner_search_results", race=self.config.label, total=len(profiles))

        if not profiles:
            return not_found_result(self.year)

        matches = filter_name_matches(runner_name, profiles, _profile_name)
        if not matches:
            return not_found_result(self.year)

        if len(matches) > 1:
            return ambiguous_result(
                self.year,
                [
                    CandidateMatch(
                        name=_profile_name(m),
                        bib=_str(m.get("bib")),
                        event_type=self.config.default_event_type,
                    )
                    for m in matches
                ],
            )

        profile = matches[0]
        pid = profile.get("pid")
        time, pace = None, None
        if pid:
            time, pace = await self._finish_time_and_pace(pid)

        results_url = f"{TRACKER_URL}/{self.event_id}#/tracker/{pid}" if pid else self.dashboard_url
        logger.info("runner_found", race=self.config.label, name=_profile_name(profile), pid=pid)
        return found_result(
            self.year,
            bib_number=profile.get("bib"),
            official_time=time,
            official_pace=pace,
            event_type=self.config.default_event_type,
            results_url=results_url,
            raw_data=profile,
        )

    async def _finish_time_and_pace(self, pid: str) -> tuple[str | None, str | None]:
        """Read time and pace from the finish split; a failed splits call leaves both empty."""
        try:
            data = await self.http.post_form(
                self.platform,
                f"{API_URL}/events/{self.event_id}/profiles/{pid}/splits",
                self._auth_form(),
            )
        except ScraperFetchError as e:
            logger.warning("rtrt_splits_unavailable", pid=pid, error=str(e))
            return None, None

        finish = next(
            (
                split
                for split in _list_of(data)
                if split.get("isFinish") == "1" or "FINISH" in (split.get("point") or "").upper()
            ),
            None,
        )
        if finish is None:
            return None, None

        raw_time = finish.get("netTime") or finish.get("time")
        clean_time = normalize_time(round_time(raw_time)) if raw_time else None

        raw_pace = finish.get("paceAvg")
        pace = format_pace(PACE_UNITS.sub("", raw_pace)) if raw_pace else None
        if not pace:
            pace = format_pace(calculate_pace(clean_time, self.config.distance_miles))

        return format_time(clean_time), pace


def _list_of(data: Any) -> list[dict[str, Any]]:
    items = (data or {}).get("list") if isinstance(data, dict) else None
    return items if isinstance(items, list) else []


def _profile_name(profile: dict[str, Any]) -> str:
    return profile.get("name") or f"{profile.get('fname') or ''} {profile.get('lname') or ''}".strip()


def _str(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None
