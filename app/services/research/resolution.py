"""Disambiguation and override resolution.

Per (order, race edition) the research status follows:

    not attempted -> found | ambiguous | not_found

'found' is terminal. 'ambiguous' becomes 'found' through accept_match() or a
later search that returns exactly one candidate. 'not_found' is searched
again only when research is re-run.

Overrides are non-destructive: clearing one reveals the ingested value.
"""

from datetime import datetime, timezone
from typing import Any

import structlog

from app.models.domain import Order, OrderStatus, ResearchStatus, RunnerResearch
from app.services.normalization import (
    MARATHON_MILES,
    calculate_pace,
    format_pace,
    format_time,
    names_match,
    normalize_time,
)
from app.services.research.errors import (
    InvalidCandidate,
    InvalidOverride,
    OrderNotFound,
    ResearchNotFound,
)
from app.services.research.repository import ResearchRepository
from app.services.scrapers.base import CandidateMatch

logger = structlog.get_logger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()

_TRANSITIONS: dict[ResearchStatus | None, set[ResearchStatus]] = {
    None: {ResearchStatus.FOUND, ResearchStatus.AMBIGUOUS, ResearchStatus.NOT_FOUND},
    ResearchStatus.FOUND: set(),
    ResearchStatus.AMBIGUOUS: {
        ResearchStatus.FOUND,
        ResearchStatus.AMBIGUOUS,
        ResearchStatus.NOT_FOUND,
    },
    ResearchStatus.NOT_FOUND: {
        ResearchStatus.FOUND,
        ResearchStatus.AMBIGUOUS,
        ResearchStatus.NOT_FOUND,
    },
}


def _as_status(status: ResearchStatus | str | None) -> ResearchStatus | None:
    if status is None:
        return None
    return ResearchStatus(status)


def is_cache_valid(status: ResearchStatus | str | None) -> bool:
    """A research row is a cache hit only when the runner was found."""
    return _as_status(status) == ResearchStatus.FOUND


def can_transition(
    from_status: ResearchStatus | str | None,
    to_status: ResearchStatus | str,
) -> bool:
    """Check a research status change; None means not yet attempted."""
    return _as_status(to_status) in _TRANSITIONS[_as_status(from_status)]


def _as_candidate(candidate: CandidateMatch | dict[str, Any]) -> CandidateMatch:
    if isinstance(candidate, CandidateMatch):
        return candidate
    return CandidateMatch.from_dict(candidate)


def _is_possible_match(match: CandidateMatch, possible_matches: list[dict[str, Any]]) -> bool:
    """Same name as a stored candidate, and the same bib (or time when no bib is given)."""
    for stored in possible_matches:
        known = CandidateMatch.from_dict(stored)
        if not names_match(match.name, known.name):
            continue
        if match.bib:
            if match.bib == known.bib:
                return True
        elif normalize_time(match.time) == normalize_time(known.time):
            return True
    return False


async def accept_match(
    repository: ResearchRepository,
    order_number: str,
    candidate: CandidateMatch | dict[str, Any],
    distance_miles: float = MARATHON_MILES,
) -> RunnerResearch:
    """
    Resolve an ambiguous search with an operator-selected candidate.

    Writes the candidate into the order's latest research row, marks it
    found and moves the order to ready. No scraper is called. The order's
    runner name is left untouched so the printed name is preserved.

    The row must be ambiguous and the candidate must be one of the
    possible matches stored with it.

    Raises:
        InvalidCandidate: If the candidate has no name, or neither bib nor
            time, or the row is not ambiguous, or the candidate is not one
            of the row's possible matches
        OrderNotFound: If the order does not exist
        ResearchNotFound: If the order was never researched
    """
    match = _as_candidate(candidate)
    if not match.name or not (match.bib or match.time):
        raise InvalidCandidate("Candidate needs a name and a bib or time")

    order = await repository.get_order(order_number)
    if order is None:
        raise OrderNotFound(order_number)

    research = await repository.get_latest_runner_research(order_number)
    if research is None:
        raise ResearchNotFound(order_number)

    previous_status = research.research_status
    if previous_status != ResearchStatus.AMBIGUOUS.value or not can_transition(
        previous_status, ResearchStatus.FOUND
    ):
        raise InvalidCandidate(
            f"Order {order_number} research is {previous_status}; only ambiguous research "
            "can accept a match"
        )

    if not _is_possible_match(match, research.possible_matches or []):
        raise InvalidCandidate(
            f'"{match.label}" is not one of the possible matches for order {order_number}'
        )

    time = normalize_time(match.time)
    pace = format_pace(match.pace) or format_pace(calculate_pace(time, distance_miles))
    original_search = research.runner_name or order.effective_runner_name

    research = await repository.update_runner_research(
        research,
        bib_number=match.bib,
        official_time=format_time(time),
        official_pace=pace,
        event_type=match.event_type or research.event_type,
        results_url=match.results_url or research.results_url,
        research_status=ResearchStatus.FOUND.value,
        research_notes=f'Accepted match: "{match.label}" (original search: "{original_search}")',
        possible_matches=None,
    )
    await repository.update_order(
        order,
        status=OrderStatus.READY.value,
        researched_at=datetime.now(timezone.utc),
    )

    logger.info(
        "match_accepted",
        order_number=order_number,
        race_edition_id=research.race_edition_id,
        previous_status=previous_status,
        name=match.name,
        bib=match.bib,
    )
    return research


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _clean_year(value: Any) -> int | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    try:
        year = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidOverride(f"Invalid year override: {value!r}") from e
    if year < 1900 or year > 2100:
        raise InvalidOverride(f"Year override out of range: {year}")
    return year


async def update_overrides(
    repository: ResearchRepository,
    order_number: str,
    race_name: Any = UNSET,
    year: Any = UNSET,
    runner_name: Any = UNSET,
) -> Order:
    """
    Set or clear operator overrides on an order.

    An omitted argument leaves its override unchanged; None or "" clears it,
    which makes the ingested value effective again.

    Raises:
        OrderNotFound: If the order does not exist
        InvalidOverride: If the year cannot be parsed
    """
    order = await repository.get_order(order_number)
    if order is None:
        raise OrderNotFound(order_number)

    changes: dict[str, Any] = {}
    if race_name is not UNSET:
        changes["race_name_override"] = _clean_text(race_name)
    if year is not UNSET:
        changes["year_override"] = _clean_year(year)
    if runner_name is not UNSET:
        changes["runner_name_override"] = _clean_text(runner_name)

    if order.status == OrderStatus.MISSING_YEAR.value and changes.get("year_override"):
        changes["status"] = OrderStatus.PENDING.value

    if not changes:
        return order

    order = await repository.update_order(order, **changes)
    logger.info(
        "order_overrides_updated",
        order_number=order_number,
        changes=changes,
    )
    return order
