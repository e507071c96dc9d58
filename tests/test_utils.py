"""Tests for time and interval helpers."""

import datetime

import pytest

from scheduling.utils import (
    add_minutes,
    day_name,
    format_minutes,
    intervals_overlap,
    normalize_day_name,
    parse_date,
    parse_minutes,
)


class TestParseMinutes:
    """Tests for parse_minutes."""

    @pytest.mark.parametrize("value,expected", [
        ("09:00", 540),
        ("9:30", 570),
        ("17:00:00", 1020),
        ("00:00", 0),
        ("24:00", 1440),
    ])
    def test_valid_times(self, value, expected):
        """Accepts HH:MM, H:MM, HH:MM:SS and the 24:00 end bound."""
        assert parse_minutes(value) == expected

    @pytest.mark.parametrize("value", [None, "", "noon", "25:00", "12:60", "24:30", "12-00"])
    def test_invalid_times(self, value):
        """Malformed values yield None instead of raising."""
        assert parse_minutes(value) is None

    def test_format_round_trip(self):
        """format_minutes produces zero-padded HH:MM."""
        assert format_minutes(545) == "09:05"


class TestAddMinutes:
    """Tests for add_minutes."""

    def test_adds_duration(self):
        assert add_minutes("09:30", 45) == "10:15"

    def test_end_of_day_allowed(self):
        assert add_minutes("23:30", 30) == "24:00"

    def test_past_midnight_rejected(self):
        assert add_minutes("23:45", 30) is None


class TestIntervalsOverlap:
    """Half-open interval intersection."""

    def test_touching_intervals_do_not_overlap(self):
        """[09:00,09:30) and [09:30,10:00) share only a boundary."""
        assert not intervals_overlap(540, 570, 570, 600)
        assert not intervals_overlap(570, 600, 540, 570)

    def test_partial_overlap(self):
        assert intervals_overlap(540, 600, 570, 630)

    def test_containment(self):
        assert intervals_overlap(540, 660, 570, 600)
        assert intervals_overlap(570, 600, 540, 660)


class TestDays:
    """Day-of-week normalisation."""

    @pytest.mark.parametrize("value,expected", [
        ("Monday", "Monday"),
        ("monday", "Monday"),
        ("Tue", "Tuesday"),
        (0, "Sunday"),
        (1, "Monday"),
        (6, "Saturday"),
        ("3", "Wednesday"),
    ])
    def test_normalize(self, value, expected):
        assert normalize_day_name(value) == expected

    @pytest.mark.parametrize("value", [None, 7, -1, "Funday"])
    def test_normalize_unknown(self, value):
        assert normalize_day_name(value) is None

    def test_day_name(self, monday):
        assert day_name(monday) == "Monday"
        assert day_name(monday + datetime.timedelta(days=6)) == "Sunday"


class TestParseDate:
    """ISO date parsing."""

    def test_date_part_of_timestamp(self):
        assert parse_date("2026-03-02T00:00:00") == datetime.date(2026, 3, 2)

    def test_date_passthrough(self, monday):
        assert parse_date(monday) is monday

    def test_invalid(self):
        assert parse_date("02.03.2026") is None
        assert parse_date(None) is None
