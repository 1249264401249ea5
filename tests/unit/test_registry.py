"""Unit tests for race name resolution and the race site table."""

from datetime import date

import pytest
from pydantic import ValidationError

from app.services.scrapers.config import RaceDayRule, RaceSiteConfig, parse_race_configs
from app.services.scrapers.errors import NoScraperAvailable
from app.services.scrapers.platforms import (
    MikaTimingScraper,
    MyChipTimeScraper,
    MyRaceScraper,
    NYRRScraper,
    RTRTScraper,
    RunSignUpScraper,
)
from app.services.scrapers.registry import ScraperRegistry, keyword_match


def _config(**overrides) -> RaceSiteConfig:
    raw = {
        "race_name": "Test Marathon",
        "platform": "nyrr",
        "location": "Testville, TX",
        "race_day": {"month": 4, "weekday": "sunday", "nth": 1},
    }
    raw.update(overrides)
    return RaceSiteConfig.model_validate(raw)


class TestRaceDayRule:
    """Test the approximate race date rule."""

    def test_first_sunday_of_november(self):
        rule = RaceDayRule(month=11, weekday="sunday", nth=1)
        assert rule.date_for(2024) == date(2024, 11, 3)
        assert rule.date_for(2023) == date(2023, 11, 5)

    def test_second_sunday_of_october(self):
        rule = RaceDayRule(month=10, weekday="sunday", nth=2)
        assert rule.date_for(2024) == date(2024, 10, 13)

    def test_last_sunday_of_october(self):
        rule = RaceDayRule(month=10, weekday="sunday", nth=-1)
        assert rule.date_for(2024) == date(2024, 10, 27)
        assert rule.date_for(2021) == date(2021, 10, 31)

    def test_first_day_already_matching(self):
        # December 1st 2024 is a Sunday
        rule = RaceDayRule(month=12, weekday="sunday", nth=1)
        assert rule.date_for(2024) == date(2024, 12, 1)

    def test_rejects_unknown_weekday(self):
        with pytest.raises(ValidationError):
            RaceDayRule(month=1, weekday="funday")

    def test_rejects_zero_nth(self):
        with pytest.raises(ValidationError):
            RaceDayRule(month=1, weekday="monday", nth=0)


class TestRaceTable:
    """Test the shipped races.yaml."""

    def test_all_races_load(self, race_configs):
        names = [c.race_name for c in race_configs]
        assert names == [
            "NYC Marathon",
            "Chicago Marathon",
            "Marine Corps Marathon",
            "California International Marathon",
            "Kiawah Island Marathon",
            "Louisiana Marathon",
            "Austin Marathon",
            "Philadelphia Marathon",
        ]

    def test_keywords_lowercased(self):
        config = _config(keywords=["NYC", " New York "])
        assert config.keywords == ["nyc", "new york"]

    def test_year_substitution(self, race_configs):
        chicago = next(c for c in race_configs if c.platform == "mika")
        assert chicago.for_year(chicago.base_url_pattern, 2023) == (
            "https://results.chicagomarathon.com/2023"
        )

    def test_events_for_year_in_search_order(self, race_configs):
        kiawah = next(c for c in race_configs if c.race_name == "Kiawah Island Marathon")
        assert kiawah.race_id == "68851"
        assert kiawah.events_for_year(2024) == [
            ("Marathon", "516051"),
            ("Half Marathon", "516050"),
        ]
        assert kiawah.events_for_year(2019) == []

    def test_events_skip_missing_keys(self, race_configs):
        louisiana = next(c for c in race_configs if c.race_name == "Louisiana Marathon")
        assert louisiana.events_for_year(2026) == [("Marathon", "623007")]

    def test_new_race_days(self, race_configs):
        by_name = {c.race_name: c for c in race_configs}
        assert by_name["Kiawah Island Marathon"].fallback_race_date(2024) == date(2024, 12, 14)
        assert by_name["Louisiana Marathon"].fallback_race_date(2025) == date(2025, 1, 19)
        assert by_name["Austin Marathon"].fallback_race_date(2026) == date(2026, 2, 15)
        assert by_name["Philadelphia Marathon"].fallback_race_date(2024) == date(2024, 11, 17)

    def test_parse_rejects_missing_race_day(self):
        with pytest.raises(ValidationError):
            parse_race_configs([{"race_name": "X", "platform": "nyrr", "location": "Y"}])


class TestKeywordMatch:
    """Test the single keyword heuristic."""

    def test_keyword_plus_marathon(self):
        config = _config(keywords=["chicago"])
        assert keyword_match(config, "chicago marathon 2024") is True

    def test_keyword_without_marathon_rejected_when_required(self):
        config = _config(keywords=["chicago"])
        assert keyword_match(config, "chicago half") is False

    def test_exact_keyword_accepted_when_not_required(self):
        config = _config(keywords=["cim"], keyword_requires_marathon=False)
        assert keyword_match(config, "cim") is True

    def test_keyword_substring_rejected_when_not_required(self):
        config = _config(keywords=["cim"], keyword_requires_marathon=False)
        assert keyword_match(config, "cim 10k") is False

    def test_no_keyword(self):
        config = _config(keywords=["chicago"])
        assert keyword_match(config, "boston marathon") is False


class TestScraperRegistry:
    """Test race name to scraper resolution."""

    def setup_method(self):
        self.year = 2024

    def test_exact_alias(self, race_configs):
        registry = ScraperRegistry(race_configs)
        scraper = registry.get_scraper_for_race("TCS New York City Marathon", self.year)
        assert isinstance(scraper, NYRRScraper)
        assert scraper.year == 2024
        assert scraper.event_code == "M2024"

    def test_case_insensitive_alias(self, race_configs):
        registry = ScraperRegistry(race_configs)
        scraper = registry.get_scraper_for_race("  bank of america chicago marathon ", self.year)
        assert isinstance(scraper, MikaTimingScraper)

    def test_keyword_fallback(self, race_configs):
        registry = ScraperRegistry(race_configs)
        scraper = registry.get_scraper_for_race("2024 Marine Corps Marathon DC", self.year)
        assert isinstance(scraper, RTRTScraper)
        assert scraper.event_id == "MCM-2024"

    def test_keyword_alone_for_unique_abbreviation(self, race_configs):
        registry = ScraperRegistry(race_configs)
        scraper = registry.get_scraper_for_race("cim", self.year)
        assert isinstance(scraper, MyRaceScraper)
        assert scraper.race_id == "cim_2024"

    @pytest.mark.parametrize(
        "race_name, cls",
        [
            ("Kiawah", RunSignUpScraper),
            ("The Louisiana Marathon", RunSignUpScraper),
            ("Ascension Seton Austin Marathon", MyChipTimeScraper),
            ("philly marathon 2024", MyChipTimeScraper),
        ],
    )
    def test_runsignup_and_mychiptime_races(self, race_configs, race_name, cls):
        registry = ScraperRegistry(race_configs)
        assert isinstance(registry.get_scraper_for_race(race_name, self.year), cls)

    def test_louisiana_needs_marathon_keyword(self, race_configs):
        registry = ScraperRegistry(race_configs)
        assert registry.has_scraper_for_race("Louisiana Half") is False

    def test_unknown_race_raises_with_supported_list(self, race_configs):
        registry = ScraperRegistry(race_configs)
        with pytest.raises(NoScraperAvailable) as exc_info:
            registry.get_scraper_for_race("Boston Marathon", self.year)

        error = exc_info.value
        assert error.race_name == "Boston Marathon"
        assert "NYC Marathon" in error.supported_races
        assert "Chicago Marathon" in str(error)

    def test_has_scraper_for_race(self, race_configs):
        registry = ScraperRegistry(race_configs)
        assert registry.has_scraper_for_race("NYC Marathon") is True
        assert registry.has_scraper_for_race("Chicago Half") is False
        assert registry.has_scraper_for_race("") is False

    def test_supported_races_deduplicated(self, race_configs):
        duplicate = race_configs[0].model_copy(update={"aliases": ["Another NYC Alias"]})
        registry = ScraperRegistry([*race_configs, duplicate])
        races = registry.get_supported_races()
        assert races.count("NYC Marathon") == 1
        assert len(races) == 8

    def test_unknown_platform_rejected(self):
        with pytest.raises(ValueError, match="carrier-pigeon"):
            ScraperRegistry([_config(platform="carrier-pigeon")])

    def test_custom_dispatch_table(self):
        built = []

        def factory(year, config, http=None):
            built.append((year, config.race_name))
            return object()

        registry = ScraperRegistry([_config(aliases=["Test Marathon"])], platforms={"nyrr": factory})
        registry.get_scraper_for_race("Test Marathon", 2022)
        assert built == [(2022, "Test Marathon")]
