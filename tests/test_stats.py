"""
Tests for period statistics and insights.
"""

from datetime import datetime
from decimal import Decimal

from driver_core.models import Filter, FuelType, Platform
from driver_core.stats import compute_insights, compute_stats, filter_records, fuel_efficiency

from .conftest import fixed_clock, make_expense, make_fuel, make_gain, make_shift

MONDAY = datetime(2024, 5, 13, 12, 0)
PREVIOUS_MONDAY = datetime(2024, 5, 6, 12, 0)
SUNDAY = datetime(2024, 5, 12, 12, 0)
WEDNESDAY = datetime(2024, 5, 15, 12, 0)


class TestFilterRecords:
    def test_keeps_entries_dated_in_period(self):
        inside = make_gain(10, WEDNESDAY)
        outside = make_gain(20, datetime(2024, 5, 14, 12, 0))
        selection = filter_records(Filter("today"), [inside, outside], [], fixed_clock)
        assert selection.entries == [inside]

    def test_shifts_are_selected_by_start(self):
        overnight = make_shift(datetime(2024, 5, 14, 23), datetime(2024, 5, 15, 3), shift_id="a")
        morning = make_shift(datetime(2024, 5, 15, 8), datetime(2024, 5, 15, 12), shift_id="b")
        selection = filter_records(Filter("today"), [], [overnight, morning], fixed_clock)
        assert selection.shifts == [morning]

    def test_incomplete_custom_range_selects_nothing(self):
        selection = filter_records(
            Filter("custom", "2024-05-01", None), [make_gain(10, WEDNESDAY)], [], fixed_clock
        )
        assert selection.is_empty


class TestComputeStats:
    def setup_method(self):
        self.entries = [
            make_gain(100, datetime(2024, 5, 15, 10), trips=10),
            make_gain(50, datetime(2024, 5, 15, 11), reward=True),
            make_fuel(5, 10, 100, datetime(2024, 5, 15, 9)),
        ]
        self.shifts = [make_shift(datetime(2024, 5, 15, 8), datetime(2024, 5, 15, 12))]

    def test_totals(self):
        stats = compute_stats(self.entries, self.shifts)
        assert stats.revenue == Decimal("150")
        assert stats.expenses == Decimal("50")
        assert stats.profit == Decimal("100")
        assert stats.total_hours == 4
        assert stats.total_km == 100
        assert stats.entry_count == 3
        assert stats.shift_count == 1

    def test_rewards_do_not_count_trips(self):
        stats = compute_stats(self.entries, self.shifts)
        assert stats.total_trips == 10
        assert stats.profit_per_trip == 10
        assert stats.expenses_per_trip == 5

    def test_rates(self):
        stats = compute_stats(self.entries, self.shifts)
        assert stats.profit_per_hour == 25
        assert stats.revenue_per_km == Decimal("1.5")
        assert stats.expenses_per_hour == Decimal("12.5")

    def test_zero_denominators_give_zero_rates(self):
        stats = compute_stats([make_expense(40, WEDNESDAY)], [])
        assert stats.profit == Decimal("-40")
        assert stats.profit_per_hour == 0
        assert stats.profit_per_km == 0
        assert stats.profit_per_trip == 0

    def test_to_dict_uses_two_decimal_strings(self):
        payload = compute_stats(self.entries, self.shifts).to_dict()
        assert payload["profit"] == "100.00"
        assert payload["total_trips"] == 10
        assert payload["fuel_efficiency"] == {"ethanol": "10.00", "gasoline": "0.00"}


class TestFuelEfficiency:
    def test_weighted_by_liters(self):
        entries = [
            make_fuel(5, 10, 100, WEDNESDAY, entry_id="a"),
            make_fuel(5, 14, 280, WEDNESDAY, entry_id="b"),
        ]
        # 380 km over 10 + 20 liters.
        efficiency = fuel_efficiency(entries)
        assert efficiency[FuelType.ETHANOL] == Decimal(380) / Decimal(30)
        assert efficiency[FuelType.GASOLINE] == 0


class TestMostProfitableDay:
    def test_average_per_distinct_date(self):
        entries = [
            make_gain(100, MONDAY),
            make_gain(50, PREVIOUS_MONDAY),
            make_gain(60, WEDNESDAY),
        ]
        insight = compute_insights(entries).most_profitable_day
        assert insight.value == "Monday"
        assert insight.metric == 75

    def test_same_day_entries_count_once(self):
        entries = [
            make_gain(40, datetime(2024, 5, 13, 10)),
            make_gain(60, datetime(2024, 5, 13, 18)),
        ]
        assert compute_insights(entries).most_profitable_day.metric == 100

    def test_tie_goes_to_earlier_weekday(self):
        entries = [make_gain(100, MONDAY), make_gain(100, SUNDAY)]
        assert compute_insights(entries).most_profitable_day.value == "Sunday"

    def test_no_positive_day_is_insufficient(self):
        entries = [make_gain(30, WEDNESDAY), make_expense(50, WEDNESDAY)]
        assert not compute_insights(entries).most_profitable_day.has_data


class TestPlatformInsights:
    def test_best_platform_by_revenue_per_trip(self):
        entries = [
            make_gain(100, WEDNESDAY, Platform.UBER, trips=10),
            make_gain(90, WEDNESDAY, Platform.NINE_NINE, trips=6),
        ]
        insight = compute_insights(entries).best_platform
        assert insight.value == "99"
        assert insight.metric == 15

    def test_best_platform_tie_goes_to_first_seen(self):
        entries = [
            make_gain(100, WEDNESDAY, Platform.UBER, trips=10),
            make_gain(50, WEDNESDAY, Platform.NINE_NINE, trips=5),
        ]
        assert compute_insights(entries).best_platform.value == "Uber"

    def test_gains_without_trips_are_ignored(self):
        entries = [
            make_gain(300, WEDNESDAY, Platform.PARTICULAR),
            make_gain(500, WEDNESDAY, Platform.UBER, reward=True),
        ]
        insights = compute_insights(entries)
        assert not insights.best_platform.has_data
        assert not insights.most_used_platform.has_data

    def test_most_used_platform_by_trip_count(self):
        entries = [
            make_gain(100, WEDNESDAY, Platform.UBER, trips=10),
            make_gain(80, WEDNESDAY, Platform.NINE_NINE, trips=12),
        ]
        insight = compute_insights(entries).most_used_platform
        assert insight.value == "99"
        assert insight.metric == 12


class TestMostEfficientFuel:
    def test_lowest_cost_per_km(self):
        entries = [
            make_fuel(5, 10, 100, WEDNESDAY, FuelType.ETHANOL),
            make_fuel(5, "12.5", 125, WEDNESDAY, FuelType.GASOLINE),
        ]
        insight = compute_insights(entries).most_efficient_fuel
        assert insight.value == "Gasolina"
        assert insight.metric == Decimal("0.4")

    def test_tie_goes_to_first_seen(self):
        entries = [
            make_fuel(5, 10, 100, WEDNESDAY, FuelType.ETHANOL),
            make_fuel(6, 12, 120, WEDNESDAY, FuelType.GASOLINE),
        ]
        assert compute_insights(entries).most_efficient_fuel.value == "Etanol"


class TestEmptyInsights:
    def test_everything_insufficient(self):
        insights = compute_insights([])
        payload = insights.to_dict()
        assert all(item == {"value": None, "metric": None} for item in payload.values())
