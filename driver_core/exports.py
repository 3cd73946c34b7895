"""Tabular export and printable report for a filtered selection."""

from __future__ import annotations

import csv
import html
import io
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional, Sequence, Union

from .durations import pause_duration, shift_duration
from .exceptions import EmptyExportError
from .models import Entry, ExpenseCategory, ExpenseEntry, GainEntry, Shift
from .stats import FilteredRecords, compute_stats
from .timeutils import (
    format_currency,
    format_date_from_naive_utc,
    format_hours_minutes,
    format_number,
    format_time_from_naive_utc,
    local_date_iso_string,
    to_naive_utc_iso_string,
)

__all__ = [
    "CSV_HEADERS",
    "HistoryItem",
    "combine_history",
    "default_csv_filename",
    "entry_title",
    "render_csv",
    "render_report",
]

HistoryItem = Union[GainEntry, ExpenseEntry, Shift]

CSV_HEADERS = (
    "Date",
    "Type",
    "Title",
    "Description",
    "Amount",
    "Platform",
    "TripCount",
    "IsReward",
    "ExpenseCategory",
    "FuelType",
    "PricePerLiter",
    "Consumption",
    "Distance",
    "StartTime",
    "EndTime",
    "PauseDuration",
    "NetDuration",
)

BOM = "\ufeff"
NO_RECORDS_MESSAGE = "There is no data to export for the selected period."


def _moment(item: HistoryItem) -> datetime:
    if isinstance(item, Shift):
        return item.start or datetime.min
    return item.date


def combine_history(entries: Sequence[Entry], shifts: Sequence[Shift]) -> List[HistoryItem]:
    """Entries and shifts in one list, newest first (entries first on equal times)."""
    items: List[HistoryItem] = [*entries, *shifts]
    return sorted(items, key=_moment, reverse=True)


def entry_title(entry: Entry) -> str:
    """Headline shown for an entry in listings."""
    if isinstance(entry, ExpenseEntry):
        if entry.category is ExpenseCategory.FUEL:
            return ExpenseCategory.FUEL.value
        return entry.description or entry.category.value
    return entry.description or (entry.platform.value if entry.platform else "Gain")


def _stored(moment: Optional[datetime]) -> str:
    return to_naive_utc_iso_string(moment) if moment else ""


def _comma_decimal(value: Decimal) -> str:
    return f"{value:.2f}".replace(".", ",")


def _entry_row(entry: Entry) -> List[object]:
    row: List[object] = [""] * len(CSV_HEADERS)
    row[0] = format_date_from_naive_utc(_stored(entry.date))
    row[1] = "Gain" if isinstance(entry, GainEntry) else "Expense"
    row[2] = entry_title(entry)
    row[3] = entry.description
    row[4] = _comma_decimal(entry.amount)
    if isinstance(entry, GainEntry):
        row[5] = entry.platform.value if entry.platform else ""
        row[6] = entry.trip_count if entry.trip_count is not None else ""
        row[7] = "Yes" if entry.is_reward else "No"
    else:
        row[8] = entry.category.value
        details = entry.fuel_details
        if details is not None:
            row[9] = details.fuel_type.value
            row[10] = _comma_decimal(details.price_per_liter)
            row[11] = _comma_decimal(details.avg_consumption)
            row[12] = format(details.distance_driven.normalize(), "f")
    return row


def _shift_row(shift: Shift) -> List[object]:
    row: List[object] = [""] * len(CSV_HEADERS)
    row[0] = format_date_from_naive_utc(_stored(shift.start))
    row[1] = "Shift"
    row[2] = "Work shift"
    row[13] = format_time_from_naive_utc(_stored(shift.start))
    row[14] = format_time_from_naive_utc(_stored(shift.end))
    row[15] = format_hours_minutes(pause_duration(shift))
    row[16] = format_hours_minutes(shift_duration(shift, True))
    return row


def render_csv(entries: Sequence[Entry], shifts: Sequence[Shift]) -> str:
    """Comma-separated history with a byte-order mark for spreadsheet apps."""
    items = combine_history(entries, shifts)
    if not items:
        raise EmptyExportError(NO_RECORDS_MESSAGE)
    buffer = io.StringIO()
    buffer.write(BOM)
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for item in items:
        writer.writerow(_shift_row(item) if isinstance(item, Shift) else _entry_row(item))
    return buffer.getvalue()


def default_csv_filename(today: Optional[date] = None) -> str:
    return f"constant_driver_history_{local_date_iso_string(today)}.csv"


def _escape(text: object) -> str:
    """HTML-escape a value."""
    return html.escape(str(text))


REPORT_STYLE = """
body { font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; margin: 0; color: #333; }
@page { size: A4; margin: 1cm; }
.header { background-color: #4338ca; color: white; padding: 30px; margin-bottom: 20px; }
.header h1 { margin: 0; font-size: 24px; }
.content { padding: 0 30px 30px; }
.section-title { font-size: 16px; font-weight: bold; color: #4338ca; border-bottom: 2px solid #e0e7ff; margin: 30px 0 15px; text-transform: uppercase; }
.metrics-grid { display: grid; grid-template-columns: repeat(4, 1fr); gap: 15px; margin-bottom: 20px; }
.metric-card { background: #f9fafb; border: 1px solid #e5e7eb; border-radius: 8px; padding: 15px; text-align: center; }
.metric-title { font-size: 11px; text-transform: uppercase; color: #6b7280; }
.metric-value { font-size: 18px; font-weight: bold; }
table { width: 100%; border-collapse: collapse; font-size: 12px; }
th { text-align: left; background-color: #f3f4f6; padding: 10px; }
td { padding: 10px; border-bottom: 1px solid #e5e7eb; vertical-align: top; }
.amount-col { text-align: right; font-family: monospace; }
.gain { color: #16a34a; }
.expense { color: #dc2626; }
.badge { display: inline-block; padding: 2px 6px; border-radius: 4px; font-size: 10px; background: #e5e7eb; margin-right: 5px; }
.footer { margin-top: 50px; text-align: center; font-size: 10px; color: #9ca3af; }
"""


def _metric_card(title: str, value: str) -> str:
    return (
        '<div class="metric-card">'
        f'<div class="metric-title">{_escape(title)}</div>'
        f'<div class="metric-value">{_escape(value)}</div>'
        "</div>"
    )


def _report_row(entry: Entry) -> str:
    badges: List[str] = []
    extra = ""
    if isinstance(entry, GainEntry):
        kind, css = "Income", "gain"
        if entry.platform:
            badges.append(entry.platform.value)
        if entry.trip_count:
            badges.append(f"{entry.trip_count} trips")
        sign = ""
    else:
        kind, css = "Outgoing", "expense"
        badges.append(entry.category.value)
        if entry.fuel_details is not None:
            details = entry.fuel_details
            extra = (
                f"<br/><small>{_escape(details.fuel_type.value)} | "
                f"{_escape(format_number(details.distance_driven, 0))} km | "
                f"{_escape(format_currency(details.price_per_liter))}/L</small>"
            )
        sign = "- "
    badge_html = "".join(f'<span class="badge">{_escape(badge)}</span>' for badge in badges)
    return (
        "<tr>"
        f"<td>{_escape(format_date_from_naive_utc(_stored(entry.date)))}</td>"
        f"<td>{kind}</td>"
        f"<td>{badge_html}{_escape(entry.description)}{extra}</td>"
        f'<td class="amount-col {css}">{sign}{_escape(format_currency(entry.amount))}</td>'
        "</tr>"
    )


def render_report(selection: FilteredRecords, generated_at: datetime) -> str:
    """Render a printable HTML performance report for a filtered selection.

    Only entries are listed in the transaction table; shifts feed the worked-hours
    figures but are not itemised.
    """
    if selection.is_empty:
        raise EmptyExportError(NO_RECORDS_MESSAGE)
    stats = compute_stats(selection.entries, selection.shifts)
    period_start = format_date_from_naive_utc(_stored(selection.range.start))
    period_end = format_date_from_naive_utc(_stored(selection.range.end))

    summary = "".join(
        [
            _metric_card("Net profit", format_currency(stats.profit)),
            _metric_card("Total revenue", format_currency(stats.revenue)),
            _metric_card("Total expenses", format_currency(stats.expenses)),
            _metric_card("Hours worked", format_hours_minutes(stats.total_duration_ms)),
        ]
    )
    rates = "".join(
        [
            _metric_card("Profit / hour", format_currency(stats.profit_per_hour)),
            _metric_card("Profit / km", format_currency(stats.profit_per_km)),
            _metric_card("Total km", f"{format_number(stats.total_km, 0)} km"),
            _metric_card("Total trips", str(stats.total_trips)),
        ]
    )
    rows = "".join(
        _report_row(item)
        for item in combine_history(selection.entries, selection.shifts)
        if not isinstance(item, Shift)
    )

    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<title>Performance report - Constant Driver</title>
<style>{REPORT_STYLE}</style>
</head>
<body>
<div class="header">
<h1>Constant Driver</h1>
<p>Financial performance report</p>
<p>Period: {_escape(period_start)} to {_escape(period_end)}</p>
</div>
<div class="content">
<div class="section-title">Executive summary</div>
<div class="metrics-grid">{summary}</div>
<div class="metrics-grid">{rates}</div>
<div class="section-title">Transactions</div>
<table>
<thead><tr><th>Date</th><th>Type</th><th>Description / details</th><th>Amount</th></tr></thead>
<tbody>{rows}</tbody>
</table>
<div class="footer">Generated on {_escape(generated_at.strftime('%d/%m/%Y %H:%M:%S'))} by Constant Driver</div>
</div>
</body>
</html>
"""
