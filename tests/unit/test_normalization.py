"""Unit tests for runner name and finish time normalization."""

import pytest

from app.services.normalization import (
    HALF_MARATHON_MILES,
    calculate_pace,
    format_pace,
    format_time,
    names_match,
    normalize_name,
    normalize_time,
    round_time,
    split_name,
    time_to_seconds,
)


class TestNormalizeName:
    """Test name canonicalization."""

    def test_lowercases_and_trims(self):
        assert normalize_name("  John SMITH ") == "john smith"

    def test_collapses_whitespace(self):
        assert normalize_name("John    Q   Smith") == "john q smith"

    def test_swaps_last_first(self):
        assert normalize_name("Smith, John") == "john smith"

    def test_empty(self):
        assert normalize_name("") == ""
        assert normalize_name(None) == ""


class TestNamesMatch:
    """Test the loose first/last token matcher."""

    def test_last_first_order_matches(self):
        assert names_match("John Smith", "Smith, John") is True

    def test_different_first_name_does_not_match(self):
        assert names_match("John Smith", "Jon Smith") is False

    def test_middle_name_ignored(self):
        assert names_match("John Middle Smith", "John Smith") is True

    def test_middle_initial_ignored(self):
        assert names_match("John Q. Smith", "john smith") is True

    def test_case_insensitive(self):
        assert names_match("JOHN SMITH", "john smith") is True

    def test_single_token_needs_exact_match(self):
        assert names_match("Smith", "Smith") is True
        assert names_match("Smith", "John Smith") is False

    def test_empty_never_matches(self):
        assert names_match("", "") is False
        assert names_match("John Smith", None) is False


class TestSplitName:
    def test_first_and_rest(self):
        assert split_name("Mary Ann Jones") == ("Mary", "Ann Jones")

    def test_single_token_is_last_name(self):
        assert split_name("Cher") == ("", "Cher")


class TestTimes:
    """Test finish time normalization and display formatting."""

    def test_normalize_strips_hour_padding(self):
        assert normalize_time("03:42:15") == "3:42:15"

    def test_normalize_unit_format(self):
        assert normalize_time("3h 42m 5s") == "3:42:05"

    def test_normalize_passes_through_unknown(self):
        assert normalize_time(" DNF ") == "DNF"

    def test_normalize_empty(self):
        assert normalize_time(None) is None

    def test_format_time_strips_one_leading_zero(self):
        assert format_time("04:14:45") == "4:14:45"

    def test_format_time_keeps_zero_hour(self):
        assert format_time("00:45:30") == "0:45:30"

    def test_format_time_leaves_two_digit_hours(self):
        assert format_time("10:05:00") == "10:05:00"

    def test_round_time_rounds_up(self):
        assert round_time("3:42:15.6") == "3:42:16"

    def test_round_time_rounds_down(self):
        assert round_time("3:42:15.4") == "3:42:15"

    def test_round_time_carries_into_hours(self):
        assert round_time("3:59:59.5") == "4:00:00"

    def test_round_time_whole_seconds_unchanged(self):
        assert round_time("3:42:15") == "3:42:15"

    def test_time_to_seconds(self):
        assert time_to_seconds("3:42:15") == 13335
        assert time_to_seconds("45:30") == 2730
        assert time_to_seconds("abc") is None


class TestPace:
    """Test per-mile pace computation."""

    def test_marathon_pace(self):
        assert calculate_pace("3:42:15", 26.2) == "8:29"

    def test_seconds_rounding_to_sixty_carries(self):
        # 14138 s / 26.2 = 539.62 s -> 8:59.62, rounds to 9:00
        pace = calculate_pace("3:55:38", 26.2)
        assert pace == "9:00"
        assert not pace.endswith(":60")

    @pytest.mark.parametrize(
        "time",
        ["3:55:38", "2:10:50", "4:21:47", "1:58:57", "5:02:31"],
    )
    def test_never_sixty_seconds(self, time):
        assert not calculate_pace(time, 26.2).endswith(":60")

    def test_half_marathon(self):
        assert calculate_pace("1:45:00", HALF_MARATHON_MILES) == "8:01"

    def test_missing_time(self):
        assert calculate_pace(None) is None

    def test_format_pace_strips_leading_zero(self):
        assert format_pace("08:29") == "8:29"
        assert format_pace("10:02") == "10:02"
