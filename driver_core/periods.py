"""Resolve named or custom periods into concrete wall-clock ranges.

All boundaries are naive datetimes in the same field space as stored records, so
range checks never depend on the process timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

from .models import Filter
from .timeutils import EPOCH
from .validators import parse_date_input

__all__ = [
    "Clock",
    "DateRange",
    "PERIODS",
    "local_now",
    "resolve_period",
]

Clock = Callable[[], datetime]

PERIODS = (
    "today",
    "yesterday",
    "this_week",
    "last_7_days",
    "this_month",
    "last_30_days",
    "all",
    "custom",
)

ONE_DAY = timedelta(days=1)
ONE_MS = timedelta(milliseconds=1)
END_OF_DAY = time(23, 59, 59, 999000)


def local_now() -> datetime:
    """Current local wall-clock time as a naive datetime."""
    return datetime.now()


@dataclass(frozen=True)
class DateRange:
    start: datetime
    end: datetime

    @property
    def is_empty(self) -> bool:
        """The ``start == end == epoch`` marker for an incomplete custom range."""
        return self.start == EPOCH and self.end == EPOCH

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None or self.is_empty:
            return False
        return self.start <= moment <= self.end


EMPTY_RANGE = DateRange(EPOCH, EPOCH)


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _day_range(day: date) -> DateRange:
    start = _midnight(day)
    return DateRange(start, start + ONE_DAY - ONE_MS)


def _last_day_of_month(day: date) -> date:
    first_of_next = (day.replace(day=28) + timedelta(days=4)).replace(day=1)
    return first_of_next - ONE_DAY


def _custom_range(period_filter: Filter) -> DateRange:
    if not period_filter.custom_start or not period_filter.custom_end:
        return EMPTY_RANGE
    start = parse_date_input(period_filter.custom_start, "start")
    end = parse_date_input(period_filter.custom_end, "end")
    return DateRange(_midnight(start), datetime.combine(end, END_OF_DAY))


def resolve_period(period_filter: Filter, clock: Optional[Clock] = None) -> DateRange:
    """Map ``period_filter`` to an inclusive range anchored at ``clock()``.

    Unknown period keys fall back to ``today``.
    """
    now = (clock or local_now)().replace(tzinfo=None)
    today = now.date()
    period = period_filter.period

    if period == "yesterday":
        return _day_range(today - ONE_DAY)
    if period == "this_week":
        # Weeks start on Monday; date.weekday() is 0 for Monday already.
        monday = today - timedelta(days=today.weekday())
        sunday = monday + timedelta(days=6)
        return DateRange(_midnight(monday), datetime.combine(sunday, END_OF_DAY))
    if period == "last_7_days":
        return DateRange(_midnight(today - timedelta(days=6)), now)
    if period == "this_month":
        first = today.replace(day=1)
        return DateRange(_midnight(first), datetime.combine(_last_day_of_month(today), END_OF_DAY))
    if period == "last_30_days":
        return DateRange(_midnight(today - timedelta(days=29)), now)
    if period == "all":
        return DateRange(EPOCH, now)
    if period == "custom":
        return _custom_range(period_filter)
    return _day_range(today)
