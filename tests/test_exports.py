"""
Tests for the CSV history export and the HTML report.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal

import pytest

from driver_core.exceptions import EmptyExportError
from driver_core.exports import (
    BOM,
    CSV_HEADERS,
    combine_history,
    default_csv_filename,
    entry_title,
    render_csv,
    render_report,
)
from driver_core.models import ExpenseCategory, Filter, FuelType, GainEntry, Platform
from driver_core.stats import filter_records

from .conftest import NOW, fixed_clock, make_expense, make_fuel, make_gain, make_shift


@pytest.fixture
def records():
    entries = [
        make_gain("120.50", datetime(2024, 5, 15, 12), Platform.UBER, trips=8),
        make_fuel(5, 10, 300, datetime(2024, 5, 15, 9), FuelType.GASOLINE),
    ]
    shifts = [
        make_shift(
            datetime(2024, 5, 15, 18),
            datetime(2024, 5, 15, 22),
            pauses=[(datetime(2024, 5, 15, 20), datetime(2024, 5, 15, 20, 30))],
        )
    ]
    return entries, shifts


def parse_csv(content):
    assert content.startswith(BOM)
    return list(csv.reader(io.StringIO(content[len(BOM):])))


class TestHistory:
    def test_newest_first(self, records):
        entries, shifts = records
        items = combine_history(entries, shifts)
        assert [type(item).__name__ for item in items] == ["Shift", "GainEntry", "ExpenseEntry"]

    def test_entry_titles(self):
        when = datetime(2024, 5, 15, 12)
        assert entry_title(make_fuel(5, 10, 100, when)) == "Combustível"
        assert entry_title(make_expense(20, when, ExpenseCategory.FOOD)) == "Alimentação"
        assert entry_title(make_expense(20, when, description="Lunch")) == "Lunch"
        assert entry_title(make_gain(10, when, platform=None)) == "Gain"


class TestCsvExport:
    def test_header_and_rows(self, records):
        rows = parse_csv(render_csv(*records))
        assert rows[0] == list(CSV_HEADERS)
        assert rows[1] == [
            "15/05/2024", "Shift", "Work shift", "", "", "", "", "", "", "", "", "", "",
            "18:00", "22:00", "00h30", "03h30",
        ]
        assert rows[2] == [
            "15/05/2024", "Gain", "Uber", "", "120,50", "Uber", "8", "No", "", "", "", "", "",
            "", "", "", "",
        ]
        assert rows[3] == [
            "15/05/2024", "Expense", "Combustível", "", "150,00", "", "", "", "Combustível",
            "Gasolina", "5,00", "10,00", "300", "", "", "", "",
        ]

    def test_descriptions_with_separators_are_quoted(self):
        gain = GainEntry(
            id="g1",
            amount=Decimal("10"),
            date=NOW,
            description='Airport, "VIP"',
            is_reward=True,
        )
        rows = parse_csv(render_csv([gain], []))
        assert rows[1][2] == 'Airport, "VIP"'
        assert rows[1][7] == "Yes"

    def test_empty_selection_is_rejected(self):
        with pytest.raises(EmptyExportError):
            render_csv([], [])

    def test_default_filename(self):
        assert default_csv_filename(date(2024, 5, 15)) == "constant_driver_history_2024-05-15.csv"


class TestReport:
    def test_summary_and_transactions(self, records):
        entries, shifts = records
        selection = filter_records(Filter("today"), entries, shifts, fixed_clock)
        report = render_report(selection, generated_at=NOW)
        assert "Period: 15/05/2024 to 15/05/2024" in report
        assert "R$ 120,50" in report
        assert "- R$ 150,00" in report
        assert "03h30" in report
        assert "Generated on 15/05/2024 14:30:00" in report
        assert "Work shift" not in report

    def test_descriptions_are_escaped(self):
        expense = make_expense(20, NOW, description="<script>alert(1)</script>")
        selection = filter_records(Filter("today"), [expense], [], fixed_clock)
        report = render_report(selection, generated_at=NOW)
        assert "<script>" not in report
        assert "&lt;script&gt;" in report

    def test_empty_selection_is_rejected(self):
        selection = filter_records(Filter("yesterday"), [make_gain(10, NOW)], [], fixed_clock)
        with pytest.raises(EmptyExportError):
            render_report(selection, generated_at=NOW)
