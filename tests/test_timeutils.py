"""
Tests for wall-clock timestamps and pt-BR display formatting.
"""

from datetime import date, datetime
from decimal import Decimal

from driver_core.timeutils import (
    format_currency,
    format_date_from_naive_utc,
    format_duration,
    format_hours_minutes,
    format_number,
    format_time_from_naive_utc,
    local_date_iso_string,
    parse_naive_utc,
    to_naive_utc_iso_string,
)


class TestNaiveUtcTimestamps:
    def test_encodes_wall_clock_fields_with_milliseconds(self):
        value = datetime(2024, 5, 15, 9, 5, 3, 123456)
        assert to_naive_utc_iso_string(value) == "2024-05-15T09:05:03.123Z"

    def test_parse_keeps_fields(self):
        parsed = parse_naive_utc("2024-05-15T09:05:03.123Z")
        assert parsed == datetime(2024, 5, 15, 9, 5, 3, 123000)
        assert parsed.tzinfo is None

    def test_foreign_offset_is_normalised(self):
        assert parse_naive_utc("2024-05-15T09:00:00-03:00") == datetime(2024, 5, 15, 12, 0)

    def test_late_evening_stays_on_same_day(self):
        """23:30 is stored and read back as 23:30 of the same calendar day."""
        stored = to_naive_utc_iso_string(datetime(2024, 5, 15, 23, 30))
        assert format_date_from_naive_utc(stored) == "15/05/2024"
        assert format_time_from_naive_utc(stored) == "23:30"


class TestDateFormatting:
    def test_date_is_read_from_calendar_part(self):
        assert format_date_from_naive_utc("2024-01-02T00:00:00.000Z") == "02/01/2024"

    def test_malformed_date_renders_empty(self):
        assert format_date_from_naive_utc("garbage") == ""
        assert format_date_from_naive_utc("2024-01T10:00") == ""
        assert format_date_from_naive_utc(None) == ""

    def test_time_is_read_from_clock_part(self):
        assert format_time_from_naive_utc("2024-01-02T07:45:00.000Z") == "07:45"
        assert format_time_from_naive_utc("") == ""

    def test_local_date_iso_string(self):
        assert local_date_iso_string(date(2024, 1, 5)) == "2024-01-05"


class TestNumberFormatting:
    def test_currency_groups_thousands(self):
        assert format_currency(Decimal("1234.56")) == "R$ 1.234,56"

    def test_negative_currency(self):
        assert format_currency(Decimal("-10")) == "-R$ 10,00"

    def test_junk_renders_as_zero(self):
        assert format_currency(None) == "R$ 0,00"
        assert format_currency("abc") == "R$ 0,00"
        assert format_number(float("nan")) == "0,00"

    def test_rounds_half_up(self):
        assert format_number(Decimal("0.005")) == "0,01"
        assert format_number(Decimal("1234567.891"), 0) == "1.234.568"

    def test_tiny_negative_rounds_to_unsigned_zero(self):
        assert format_currency(Decimal("-0.001")) == "R$ 0,00"

    def test_values_wider_than_decimal_precision(self):
        assert format_currency(Decimal("1e30")) == "R$ 1" + ".000" * 10 + ",00"
        assert format_number(Decimal("-1e40"), 0) == "-10" + ".000" * 13


class TestDurationFormatting:
    def test_duration_hh_mm_ss(self):
        assert format_duration(3_723_000) == "01:02:03"

    def test_hours_minutes(self):
        assert format_hours_minutes(5_400_000) == "01h30"
        assert format_hours_minutes(0) == "00h00"

    def test_negative_durations_clamp_to_zero(self):
        assert format_duration(-5_000) == "00:00:00"
        assert format_hours_minutes(-60_000) == "00h00"
