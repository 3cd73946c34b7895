"""Period filtering and derived performance metrics.

Every function here is pure: it reads the record sequences it is given and never
mutates them. Only :func:`filter_records` consults the clock, through the period
resolver.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Set, Union

from .durations import MS_PER_HOUR, shift_duration
from .models import Entry, ExpenseEntry, Filter, FuelType, GainEntry, Shift
from .periods import Clock, DateRange, resolve_period

__all__ = [
    "FilteredRecords",
    "Insight",
    "Insights",
    "PeriodStats",
    "WEEKDAY_NAMES",
    "compute_insights",
    "compute_stats",
    "filter_records",
    "fuel_efficiency",
]

ZERO = Decimal(0)

# Indexed Sunday-first, matching the insight's weekday numbering (0 = Sunday).
WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


@dataclass(frozen=True)
class FilteredRecords:
    range: DateRange
    entries: List[Entry]
    shifts: List[Shift]

    @property
    def is_empty(self) -> bool:
        return not self.entries and not self.shifts


def filter_records(
    period_filter: Filter,
    entries: Iterable[Entry],
    shifts: Iterable[Shift],
    clock: Optional[Clock] = None,
) -> FilteredRecords:
    """Keep entries dated inside the period and shifts that start inside it."""
    period_range = resolve_period(period_filter, clock)
    return FilteredRecords(
        range=period_range,
        entries=[entry for entry in entries if period_range.contains(entry.date)],
        shifts=[shift for shift in shifts if period_range.contains(shift.start)],
    )


def _rate(value: Decimal, denominator: Decimal) -> Decimal:
    return value / denominator if denominator > 0 else ZERO


def _fuel_expenses(entries: Iterable[Entry]) -> List[ExpenseEntry]:
    return [entry for entry in entries if isinstance(entry, ExpenseEntry) and entry.is_fuel]


def fuel_efficiency(entries: Iterable[Entry]) -> Dict[FuelType, Decimal]:
    """Average km per liter for each fuel type, weighted by liters burned."""
    distance: Dict[FuelType, Decimal] = defaultdict(Decimal)
    liters: Dict[FuelType, Decimal] = defaultdict(Decimal)
    for entry in _fuel_expenses(entries):
        details = entry.fuel_details
        distance[details.fuel_type] += details.distance_driven
        liters[details.fuel_type] += details.liters
    return {
        fuel_type: _rate(distance[fuel_type], liters[fuel_type])
        for fuel_type in FuelType
    }


@dataclass(frozen=True)
class PeriodStats:
    revenue: Decimal = ZERO
    expenses: Decimal = ZERO
    profit: Decimal = ZERO
    total_duration_ms: int = 0
    total_hours: Decimal = ZERO
    total_km: Decimal = ZERO
    total_trips: int = 0
    revenue_per_hour: Decimal = ZERO
    revenue_per_km: Decimal = ZERO
    revenue_per_trip: Decimal = ZERO
    expenses_per_hour: Decimal = ZERO
    expenses_per_km: Decimal = ZERO
    expenses_per_trip: Decimal = ZERO
    profit_per_hour: Decimal = ZERO
    profit_per_km: Decimal = ZERO
    profit_per_trip: Decimal = ZERO
    fuel_efficiency: Dict[FuelType, Decimal] = field(default_factory=dict)
    entry_count: int = 0
    shift_count: int = 0

    def to_dict(self) -> Dict[str, object]:
        """Serialise with two-decimal strings for money and rates."""
        money = (
            "revenue",
            "expenses",
            "profit",
            "revenue_per_hour",
            "revenue_per_km",
            "revenue_per_trip",
            "expenses_per_hour",
            "expenses_per_km",
            "expenses_per_trip",
            "profit_per_hour",
            "profit_per_km",
            "profit_per_trip",
            "total_hours",
            "total_km",
        )
        payload: Dict[str, object] = {name: f"{getattr(self, name):.2f}" for name in money}
        payload.update(
            total_duration_ms=self.total_duration_ms,
            total_trips=self.total_trips,
            entry_count=self.entry_count,
            shift_count=self.shift_count,
            fuel_efficiency={
                fuel_type.name.lower(): f"{value:.2f}"
                for fuel_type, value in self.fuel_efficiency.items()
            },
        )
        return payload


def compute_stats(entries: Sequence[Entry], shifts: Sequence[Shift]) -> PeriodStats:
    """Totals and per-hour/per-km/per-trip rates for already-filtered records."""
    revenue = sum((e.amount for e in entries if isinstance(e, GainEntry)), ZERO)
    expenses = sum((e.amount for e in entries if isinstance(e, ExpenseEntry)), ZERO)
    profit = revenue - expenses

    total_duration_ms = sum(shift_duration(shift, True) for shift in shifts)
    hours = Decimal(total_duration_ms) / MS_PER_HOUR

    total_km = sum((e.fuel_details.distance_driven for e in _fuel_expenses(entries)), ZERO)
    total_trips = sum(
        e.trip_count for e in entries if isinstance(e, GainEntry) and e.counts_trips
    )
    trips = Decimal(total_trips)

    return PeriodStats(
        revenue=revenue,
        expenses=expenses,
        profit=profit,
        total_duration_ms=total_duration_ms,
        total_hours=hours,
        total_km=total_km,
        total_trips=total_trips,
        revenue_per_hour=_rate(revenue, hours),
        revenue_per_km=_rate(revenue, total_km),
        revenue_per_trip=_rate(revenue, trips),
        expenses_per_hour=_rate(expenses, hours),
        expenses_per_km=_rate(expenses, total_km),
        expenses_per_trip=_rate(expenses, trips),
        profit_per_hour=_rate(profit, hours),
        profit_per_km=_rate(profit, total_km),
        profit_per_trip=_rate(profit, trips),
        fuel_efficiency=fuel_efficiency(entries),
        entry_count=len(entries),
        shift_count=len(shifts),
    )


# Insights -------------------------------------------------------------------
#
# Each reduction walks its candidates left to right and only replaces the current
# best on a strict improvement, so ties go to the first candidate: weekday 0
# (Sunday) through 6, and platforms or fuel types in order of first appearance.


@dataclass(frozen=True)
class Insight:
    value: Optional[str] = None
    metric: Optional[Union[Decimal, int]] = None

    @property
    def has_data(self) -> bool:
        return self.value is not None

    def to_dict(self) -> Dict[str, object]:
        metric = self.metric
        if isinstance(metric, Decimal):
            metric = f"{metric:.2f}"
        return {"value": self.value, "metric": metric}


INSUFFICIENT_DATA = Insight()


@dataclass(frozen=True)
class Insights:
    most_profitable_day: Insight
    best_platform: Insight
    most_efficient_fuel: Insight
    most_used_platform: Insight

    def to_dict(self) -> Dict[str, object]:
        return {
            "most_profitable_day": self.most_profitable_day.to_dict(),
            "best_platform": self.best_platform.to_dict(),
            "most_efficient_fuel": self.most_efficient_fuel.to_dict(),
            "most_used_platform": self.most_used_platform.to_dict(),
        }


def _most_profitable_day(entries: Sequence[Entry]) -> Insight:
    totals = [ZERO] * 7
    days: List[Set[date]] = [set() for _ in range(7)]
    for entry in entries:
        weekday = (entry.date.weekday() + 1) % 7
        days[weekday].add(entry.date.date())
        totals[weekday] += entry.amount if isinstance(entry, GainEntry) else -entry.amount

    best_day: Optional[int] = None
    best_average: Optional[Decimal] = None
    for weekday in range(7):
        average = totals[weekday] / len(days[weekday]) if days[weekday] else ZERO
        if best_average is None or average > best_average:
            best_day, best_average = weekday, average

    if best_day is None or best_average is None or best_average <= 0:
        return INSUFFICIENT_DATA
    return Insight(WEEKDAY_NAMES[best_day], best_average)


def _best_platform(entries: Sequence[Entry]) -> Insight:
    revenue: Dict[str, Decimal] = {}
    trips: Dict[str, int] = {}
    for entry in entries:
        if not isinstance(entry, GainEntry) or entry.is_reward or entry.platform is None:
            continue
        if not entry.trip_count or entry.trip_count <= 0:
            continue
        name = entry.platform.value
        revenue[name] = revenue.get(name, ZERO) + entry.amount
        trips[name] = trips.get(name, 0) + entry.trip_count

    best: Optional[str] = None
    best_rate = Decimal(-1)
    for name, total in revenue.items():
        rate = total / trips[name]
        if rate > best_rate:
            best, best_rate = name, rate
    if best is None:
        return INSUFFICIENT_DATA
    return Insight(best, best_rate)


def _most_efficient_fuel(entries: Sequence[Entry]) -> Insight:
    cost: Dict[str, Decimal] = {}
    distance: Dict[str, Decimal] = {}
    for entry in _fuel_expenses(entries):
        name = entry.fuel_details.fuel_type.value
        cost[name] = cost.get(name, ZERO) + entry.amount
        distance[name] = distance.get(name, ZERO) + entry.fuel_details.distance_driven

    best: Optional[str] = None
    best_rate: Optional[Decimal] = None
    for name, total in cost.items():
        if distance[name] <= 0:
            continue
        rate = total / distance[name]
        if best_rate is None or rate < best_rate:
            best, best_rate = name, rate
    if best is None:
        return INSUFFICIENT_DATA
    return Insight(best, best_rate)


def _most_used_platform(entries: Sequence[Entry]) -> Insight:
    trips: Dict[str, int] = {}
    for entry in entries:
        if not isinstance(entry, GainEntry) or entry.platform is None:
            continue
        if not entry.trip_count or entry.trip_count <= 0:
            continue
        name = entry.platform.value
        trips[name] = trips.get(name, 0) + entry.trip_count

    best: Optional[str] = None
    best_count = -1
    for name, count in trips.items():
        if count > best_count:
            best, best_count = name, count
    if best is None:
        return INSUFFICIENT_DATA
    return Insight(best, best_count)


def compute_insights(entries: Sequence[Entry]) -> Insights:
    """Behavioural insights over an entry set; shifts play no part."""
    return Insights(
        most_profitable_day=_most_profitable_day(entries),
        best_platform=_best_platform(entries),
        most_efficient_fuel=_most_efficient_fuel(entries),
        most_used_platform=_most_used_platform(entries),
    )
