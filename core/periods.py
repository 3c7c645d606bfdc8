"""
Calendar periods used to bucket records by month.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

MONTH_NAMES = ("Jan", "Feb", "Mar", "Apr", "May", "Jun",
               "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

ALL_TIME = "All Time"


def month_key(day: date) -> str:
    """'YYYY-MM' key for a calendar date."""
    return f"{day.year}-{day.month:02d}"


def month_label(year: int, month: int) -> str:
    """Display label such as 'Mar 2024'."""
    return f"{MONTH_NAMES[month - 1]} {year}"


def shift_month(year: int, month: int, delta: int):
    """Move (year, month) by `delta` months, returning the new pair."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


@dataclass(frozen=True)
class MonthBucket:
    """One calendar month."""
    year: int
    month: int

    @property
    def key(self) -> str:
        return f"{self.year}-{self.month:02d}"

    @property
    def label(self) -> str:
        return month_label(self.year, self.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        next_year, next_month = shift_month(self.year, self.month, 1)
        return date(next_year, next_month, 1) - timedelta(days=1)

    @classmethod
    def of(cls, day: date) -> "MonthBucket":
        return cls(day.year, day.month)


@dataclass(frozen=True)
class MonthWindow:
    """
    A "last N months" window.

    Starts on the 1st of the month N-1 months before `today` and ends on
    `today` (inclusive), so it always spans exactly N calendar months.
    """
    months: int
    today: date

    def __post_init__(self):
        if self.months < 1:
            raise ValueError(f"A month window needs at least one month, got {self.months}")

    @property
    def start(self) -> date:
        year, month = shift_month(self.today.year, self.today.month, -(self.months - 1))
        return date(year, month, 1)

    @property
    def end(self) -> date:
        return self.today

    def buckets(self) -> List[MonthBucket]:
        """Exactly `months` buckets in chronological order."""
        first = self.start
        return [
            MonthBucket(*shift_month(first.year, first.month, offset))
            for offset in range(self.months)
        ]

    def contains(self, day: Optional[date]) -> bool:
        return day is not None and self.start <= day <= self.end


def last_n_months(months: int, today: Optional[date] = None) -> MonthWindow:
    """Factory for a window ending today."""
    return MonthWindow(months=months, today=today or date.today())


def in_range(day: Optional[date], start: Optional[date] = None, end: Optional[date] = None) -> bool:
    """
    Inclusive range check on whole dates. Open bounds are unbounded.

    Undated values never match a bounded range.
    """
    if start is None and end is None:
        return True
    if day is None:
        return False
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True
