"""Tests for month buckets and windows."""

from datetime import date

import pytest
from core.periods import (
    MONTH_NAMES, MonthBucket, MonthWindow, in_range, last_n_months, month_key, month_label, shift_month,
)


def test_month_key_and_label():
    assert month_key(date(2024, 3, 15)) == "2024-03"
    assert month_label(2024, 3) == "Mar 2024"
    assert len(MONTH_NAMES) == 12


@pytest.mark.parametrize("start, delta, expected", [
    ((2024, 1), -1, (2023, 12)),
    ((2024, 12), 1, (2025, 1)),
    ((2024, 6), -17, (2023, 1)),
    ((2024, 6), 0, (2024, 6)),
])
def test_shift_month(start, delta, expected):
    assert shift_month(*start, delta) == expected


class TestMonthBucket:
    """Tests for a single month."""

    def test_bounds(self):
        feb = MonthBucket(2024, 2)
        assert feb.start == date(2024, 2, 1)
        assert feb.end == date(2024, 2, 29)
        assert MonthBucket(2023, 12).end == date(2023, 12, 31)

    def test_of(self):
        assert MonthBucket.of(date(2024, 7, 9)).key == "2024-07"


class TestMonthWindow:
    """Tests for 'last N months' windows."""

    def test_six_month_window(self):
        window = MonthWindow(months=6, today=date(2024, 3, 15))
        assert window.start == date(2023, 10, 1)
        assert window.end == date(2024, 3, 15)
        assert [b.label for b in window.buckets()] == [
            "Oct 2023", "Nov 2023", "Dec 2023", "Jan 2024", "Feb 2024", "Mar 2024",
        ]

    @pytest.mark.parametrize("months", [1, 2, 6, 12, 13, 24, 37])
    def test_exactly_n_buckets(self, months):
        buckets = MonthWindow(months=months, today=date(2024, 1, 31)).buckets()
        assert len(buckets) == months
        assert buckets == sorted(buckets, key=lambda b: (b.year, b.month))
        assert buckets[-1] == MonthBucket(2024, 1)

    def test_contains_is_inclusive(self):
        window = MonthWindow(months=2, today=date(2024, 3, 15))
        assert window.contains(date(2024, 2, 1))
        assert window.contains(date(2024, 3, 15))
        assert not window.contains(date(2024, 3, 16))
        assert not window.contains(date(2024, 1, 31))
        assert not window.contains(None)

    def test_rejects_empty_window(self):
        with pytest.raises(ValueError):
            MonthWindow(months=0, today=date(2024, 1, 1))

    def test_factory_defaults_to_today(self):
        window = last_n_months(3)
        assert window.today == date.today()


def test_in_range():
    day = date(2024, 5, 1)
    assert in_range(day)
    assert in_range(day, date(2024, 5, 1), date(2024, 5, 1))
    assert not in_range(day, start=date(2024, 5, 2))
    assert not in_range(day, end=date(2024, 4, 30))
    assert not in_range(None, start=date(2024, 1, 1))
    assert in_range(None)
