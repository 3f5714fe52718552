"""
Reporting Period Calculator

Derives the current monthly reporting period and the periods a bank has
not yet filed for. All functions take "now" explicitly so results never
depend on the wall clock.
"""

from calendar import monthrange, month_name
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, List, Optional
import re

_PERIOD_RE = re.compile(r"^(\d{4})-(\d{1,2})$")


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month. Ordering follows the calendar."""
    year: int
    month: int  # 1-12

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @property
    def label(self) -> str:
        return f"{month_name[self.month]} {self.year}"

    @property
    def key(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def next(self) -> "Period":
        if self.month == 12:
            return Period(self.year + 1, 1)
        return Period(self.year, self.month + 1)

    def previous(self) -> "Period":
        if self.month == 1:
            return Period(self.year - 1, 12)
        return Period(self.year, self.month - 1)

    def shift(self, months: int) -> "Period":
        index = self.year * 12 + (self.month - 1) + months
        return Period(index // 12, index % 12 + 1)

    @classmethod
    def from_datetime(cls, value: datetime) -> "Period":
        return cls(value.year, value.month)

    @classmethod
    def parse(cls, value: str) -> "Period":
        """Parse a 'YYYY-MM' string"""
        match = _PERIOD_RE.match(value.strip()) if value else None
        if not match:
            raise ValueError("Invalid period format. Please use YYYY-MM format.")
        return cls(int(match.group(1)), int(match.group(2)))


def current_period(now: datetime) -> Period:
    """The period containing `now`, regardless of submission state"""
    return Period.from_datetime(now)


def start_period(
    created_at: Optional[datetime],
    now: datetime,
    fallback_months: int = 6
) -> Period:
    """
    First period a bank is expected to file for.

    Uses the account creation month; without a creation date, falls back to
    `fallback_months` before now.
    """
    if created_at is not None:
        return Period.from_datetime(created_at)
    return current_period(now).shift(-fallback_months)


def iter_periods(start: Period, end: Period) -> Iterator[Period]:
    """Yield periods from start to end inclusive, oldest first"""
    period = start
    while period <= end:
        yield period
        period = period.next()


def missing_periods(
    created_at: Optional[datetime],
    submitted: Iterable[Period],
    now: datetime,
    fallback_months: int = 6
) -> List[Period]:
    """
    Periods from the creation month through the month before the current
    one that have no tax report, oldest first.
    """
    submitted_set = set(submitted)
    current = current_period(now)
    start = start_period(created_at, now, fallback_months)
    return [
        period
        for period in iter_periods(start, current.previous())
        if period not in submitted_set
    ]


def filing_due_date(period: Period) -> datetime:
    """Invoices for a period are due on the last day of the following month"""
    following = period.next()
    last_day = monthrange(following.year, following.month)[1]
    return datetime(following.year, following.month, last_day, 23, 59, 59, tzinfo=timezone.utc)
