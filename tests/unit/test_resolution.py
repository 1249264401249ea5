"""Unit tests for match acceptance, overrides and the research state machine."""

import pytest

from app.models import OrderStatus, ResearchStatus
from app.services.normalization import calculate_pace, format_pace
from app.services.research import (
    InvalidCandidate,
    InvalidOverride,
    OrderNotFound,
    ResearchNotFound,
    ResearchService,
    can_transition,
    is_cache_valid,
)
from app.services.scrapers.base import CandidateMatch


@pytest.fixture
def service(session, scraper_kit):
    return ResearchService(session, registry=scraper_kit.registry)


@pytest.fixture
async def ambiguous_order(service, scraper_kit, make_order):
    """An order whose last search returned two John Smiths."""
    await make_order("9001-1")
    scraper_kit.ambiguous(
        "John Smith",
        [
            CandidateMatch(name="John Smith", bib="101", time="3:30:00"),
            CandidateMatch(name="John Smith", bib="202", time="4:10:00"),
        ],
    )
    outcome = await service.research_order("9001-1")
    assert outcome.runner_research.research_status == ResearchStatus.AMBIGUOUS.value
    return outcome


class TestStateMachine:
    def test_found_is_terminal(self):
        for status in ResearchStatus:
            assert can_transition(ResearchStatus.FOUND, status) is False

    def test_first_attempt_reaches_every_status(self):
        for status in ResearchStatus:
            assert can_transition(None, status) is True

    @pytest.mark.parametrize("start", ["ambiguous", "not_found"])
    def test_open_statuses_can_move_anywhere(self, start):
        assert can_transition(start, "found") is True
        assert can_transition(start, "ambiguous") is True
        assert can_transition(start, "not_found") is True

    def test_cache_valid_only_when_found(self):
        assert is_cache_valid("found") is True
        assert is_cache_valid(ResearchStatus.AMBIGUOUS) is False
        assert is_cache_valid("not_found") is False
        assert is_cache_valid(None) is False


class TestAcceptMatch:
    """Test operator resolution of ambiguous research."""

    async def test_accept_writes_candidate(self, service, scraper_kit, ambiguous_order):
        calls_before = scraper_kit.counter.total

        research = await service.accept_match(
            "9001-1", {"name": "John Smith", "bib": "202", "time": "04:10:00"}
        )

        assert research.id == ambiguous_order.runner_research.id
        assert research.bib_number == "202"
        assert research.official_time == "4:10:00"
        assert research.official_pace == format_pace(calculate_pace("4:10:00", 26.2))
        assert research.research_status == ResearchStatus.FOUND.value
        assert research.possible_matches is None
        assert research.research_notes == (
            'Accepted match: "John Smith, bib 202, 04:10:00" (original search: "John Smith")'
        )
        assert scraper_kit.counter.total == calls_before

        order = await service.repository.get_order("9001-1")
        assert order.status == OrderStatus.READY.value
        assert order.researched_at is not None
        assert order.runner_name == "John Smith"
        assert order.runner_name_override is None

    async def test_accepted_match_is_cached(self, service, scraper_kit, ambiguous_order):
        await service.accept_match("9001-1", CandidateMatch(name="John Smith", bib="202"))

        outcome = await service.research_order("9001-1")

        assert outcome.runner_research.bib_number == "202"
        assert scraper_kit.counter.search == 1

    async def test_candidate_pace_kept(self, service, ambiguous_order):
        research = await service.accept_match(
            "9001-1", {"name": "John Smith", "bib": "101", "time": "3:30:00", "pace": "08:01"}
        )
        assert research.official_pace == "8:01"

    async def test_results_url_falls_back_to_existing(self, service, ambiguous_order):
        research = await service.accept_match("9001-1", {"name": "John Smith", "bib": "101"})
        assert research.results_url == ambiguous_order.runner_research.results_url
        assert research.official_time is None

    @pytest.mark.parametrize(
        "candidate",
        [
            {"name": "John Smith"},
            {"bib": "101", "time": "3:30:00"},
            {"name": "", "bib": "101"},
        ],
    )
    async def test_invalid_candidate(self, service, ambiguous_order, candidate):
        with pytest.raises(InvalidCandidate):
            await service.accept_match("9001-1", candidate)

    async def test_found_research_is_not_replaced(self, service, scraper_kit, make_order):
        await make_order("9003-1")
        scraper_kit.found("John Smith", bib_number="555")
        await service.research_order("9003-1")

        with pytest.raises(InvalidCandidate, match="found"):
            await service.accept_match("9003-1", CandidateMatch(name="Someone Else", bib="999"))

        research = await service.repository.get_latest_runner_research("9003-1")
        assert research.research_status == ResearchStatus.FOUND.value
        assert research.bib_number == "555"

    async def test_not_found_research_rejects_candidate(self, service, make_order):
        await make_order("9004-1")
        await service.research_order("9004-1")

        with pytest.raises(InvalidCandidate):
            await service.accept_match("9004-1", {"name": "John Smith", "bib": "101"})

    @pytest.mark.parametrize(
        "candidate",
        [
            {"name": "John Smith", "bib": "999"},
            {"name": "Jane Doe", "bib": "101"},
            {"name": "John Smith", "time": "5:00:00"},
        ],
    )
    async def test_unknown_candidate_rejected(self, service, ambiguous_order, candidate):
        with pytest.raises(InvalidCandidate, match="not one of the possible matches"):
            await service.accept_match("9001-1", candidate)

        research = await service.repository.get_latest_runner_research("9001-1")
        assert research.research_status == ResearchStatus.AMBIGUOUS.value

    async def test_candidate_identified_by_time(self, service, ambiguous_order):
        research = await service.accept_match("9001-1", {"name": "John Smith", "time": "03:30:00"})

        assert research.research_status == ResearchStatus.FOUND.value
        assert research.official_time == "3:30:00"

    async def test_never_researched(self, service, make_order):
        await make_order("9002-1")
        with pytest.raises(ResearchNotFound):
            await service.accept_match("9002-1", {"name": "John Smith", "bib": "1"})

    async def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            await service.accept_match("nope", {"name": "John Smith", "bib": "1"})


class TestUpdateOverrides:
    """Test non-destructive operator overrides."""

    async def test_clearing_year_reverts_to_ingested(self, service, make_order):
        await make_order("9101-1", race_year=2024)

        order = await service.update_overrides("9101-1", year=2023)
        assert order.year_override == 2023
        assert order.effective_race_year == 2023

        order = await service.update_overrides("9101-1", year=None)
        assert order.year_override is None
        assert order.effective_race_year == 2024
        assert order.race_year == 2024

    async def test_empty_string_clears(self, service, make_order):
        await make_order("9101-1")
        await service.update_overrides("9101-1", year="2023", runner_name="Jon Smith")

        order = await service.update_overrides("9101-1", year="", runner_name="  ")

        assert order.year_override is None
        assert order.runner_name_override is None
        assert order.effective_runner_name == "John Smith"

    async def test_omitted_fields_unchanged(self, service, make_order):
        await make_order("9101-1")
        await service.update_overrides("9101-1", race_name=" Chicago Marathon ")

        order = await service.update_overrides("9101-1", runner_name="Jane Doe")

        assert order.race_name_override == "Chicago Marathon"
        assert order.effective_race_name == "Chicago Marathon"
        assert order.effective_runner_name == "Jane Doe"

    async def test_year_override_unblocks_missing_year(self, service, make_order):
        await make_order("9101-1", race_year=None, status=OrderStatus.MISSING_YEAR.value)

        order = await service.update_overrides("9101-1", year="2022")

        assert order.status == OrderStatus.PENDING.value
        assert order.effective_race_year == 2022

    async def test_other_override_keeps_missing_year(self, service, make_order):
        await make_order("9101-1", race_year=None, status=OrderStatus.MISSING_YEAR.value)
        order = await service.update_overrides("9101-1", runner_name="Jane Doe")
        assert order.status == OrderStatus.MISSING_YEAR.value

    @pytest.mark.parametrize("year", ["twenty", "1850", 3000])
    async def test_invalid_year(self, service, make_order, year):
        await make_order("9101-1")
        with pytest.raises(InvalidOverride):
            await service.update_overrides("9101-1", year=year)

    async def test_unknown_order(self, service):
        with pytest.raises(OrderNotFound):
            await service.update_overrides("nope", year=2020)
