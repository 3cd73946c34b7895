"""Console interface for the driver ledger."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from driver_core.exceptions import (
    BackupError,
    EmptyExportError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from driver_core.exports import default_csv_filename, entry_title
from driver_core.models import Entry, ExpenseCategory, Filter, FuelType, GainEntry, Platform, Shift
from driver_core.periods import PERIODS
from driver_core.services import EntryService, GoalService, LedgerService, ShiftService
from driver_core.stats import Insight
from driver_core.durations import pause_duration, shift_duration
from driver_core.storage import JSONStorage
from driver_core.timeutils import (
    format_currency,
    format_date_from_naive_utc,
    format_hours_minutes,
    format_number,
    format_time_from_naive_utc,
    to_naive_utc_iso_string,
)

DEFAULT_DATA_DIR = os.getenv("CONSTANT_DRIVER_DATA_DIR", "data")


def _choice_names(choices: Any) -> List[str]:
    return [member.name.lower() for member in choices]


def _parse_pause(value: str) -> Dict[str, str]:
    start, sep, end = value.partition("-")
    if not sep or not start.strip() or not end.strip():
        raise argparse.ArgumentTypeError(
            f"Invalid pause '{value}'. Expected format HH:MM-HH:MM."
        )
    return {"start": start.strip(), "end": end.strip()}


class Services:
    def __init__(self, data_dir: Path) -> None:
        storage = JSONStorage(data_dir)
        self.entries = EntryService(storage)
        self.shifts = ShiftService(storage)
        self.goals = GoalService(storage)
        self.ledger = LedgerService(self.entries, self.shifts, self.goals)


def _filter_from_args(args: argparse.Namespace) -> Filter:
    if args.start or args.end:
        return Filter(period="custom", custom_start=args.start, custom_end=args.end)
    return Filter(period=args.period)


def _format_entry(entry: Entry) -> str:
    date_text = format_date_from_naive_utc(to_naive_utc_iso_string(entry.date))
    if isinstance(entry, GainEntry):
        trips = "reward" if entry.is_reward else f"{entry.trip_count or 0} trips"
        platform = entry.platform.value if entry.platform else "-"
        detail = f"  Platform: {platform} | {trips}\n"
        amount = format_currency(entry.amount)
    else:
        detail = f"  Category: {entry.category.value}\n"
        if entry.fuel_details is not None:
            fuel = entry.fuel_details
            detail += (
                f"  Fuel: {fuel.fuel_type.value} | {format_number(fuel.distance_driven, 0)} km"
                f" | {format_currency(fuel.price_per_liter)}/L"
                f" | {format_number(fuel.avg_consumption)} km/L\n"
            )
        amount = "-" + format_currency(entry.amount)
    return (
        f"[{entry.id}] {date_text} {entry_title(entry)} {amount}\n"
        f"{detail}"
        f"  Description: {entry.description or '-'}\n"
    )


def _format_shift(shift: Shift) -> str:
    start = to_naive_utc_iso_string(shift.start) if shift.start else ""
    end = f" - {format_time_from_naive_utc(to_naive_utc_iso_string(shift.end))}" if shift.end else ""
    paused = pause_duration(shift)
    pause_text = f" | Pause: {format_hours_minutes(paused)}" if paused > 0 else ""
    return (
        f"[{shift.id}] {format_date_from_naive_utc(start)} "
        f"{format_time_from_naive_utc(start)}{end}\n"
        f"  Worked: {format_hours_minutes(shift_duration(shift, True))}{pause_text}\n"
    )


def _entry_changes(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "date": args.date,
        "amount": args.amount,
        "description": args.description,
    }


def _fuel_changes(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        "fuelType": args.fuel_type,
        "pricePerLiter": args.price_per_liter,
        "avgConsumption": args.consumption,
        "distanceDriven": args.distance,
    }


def handle_gain(args: argparse.Namespace, services: Services) -> None:
    payload = {
        **_entry_changes(args),
        "type": "gain",
        "platform": args.platform,
        "tripCount": args.trips,
        "isReward": args.reward,
    }
    if args.command == "add":
        entry = services.entries.add(payload)
        print("Gain added:\n" + _format_entry(entry))
    elif args.command == "edit":
        cleaned = {k: v for k, v in payload.items() if v is not None}
        entry = services.entries.update(args.id, cleaned)
        print("Gain updated:\n" + _format_entry(entry))


def handle_expense(args: argparse.Namespace, services: Services) -> None:
    payload: Dict[str, Any] = {
        **_entry_changes(args),
        "type": "expense",
        "category": args.category,
    }
    fuel = {k: v for k, v in _fuel_changes(args).items() if v is not None}
    if args.command == "add":
        payload["fuelDetails"] = fuel
        entry = services.entries.add(payload)
        print("Expense added:\n" + _format_entry(entry))
    elif args.command == "edit":
        existing = services.entries.get(args.id).to_dict()
        cleaned = {k: v for k, v in payload.items() if v is not None}
        cleaned["fuelDetails"] = {**(existing.get("fuelDetails") or {}), **fuel}
        entry = services.entries.update(args.id, cleaned)
        print("Expense updated:\n" + _format_entry(entry))


def handle_entry(args: argparse.Namespace, services: Services) -> None:
    if args.command == "list":
        entries = services.ledger.filtered(_filter_from_args(args)).entries
        if not entries:
            print("No entries found.")
            return
        print(f"Found {len(entries)} entries:")
        for entry in entries:
            print(_format_entry(entry))
    elif args.command == "delete":
        services.entries.delete(args.id)
        print(f"Entry {args.id} deleted.")


def handle_shift(args: argparse.Namespace, services: Services) -> None:
    if args.command in {"add", "edit"}:
        payload = {
            "date": args.date,
            "start": args.start_time,
            "end": args.end_time,
            "pauses": args.pause,
        }
        if args.command == "add":
            shift = services.shifts.add(payload)
            print("Shift added:\n" + _format_shift(shift))
        else:
            shift = services.shifts.update(args.id, payload)
            print("Shift updated:\n" + _format_shift(shift))
    elif args.command == "list":
        shifts = services.ledger.filtered(_filter_from_args(args)).shifts
        if not shifts:
            print("No shifts found.")
            return
        print(f"Found {len(shifts)} shifts:")
        for shift in shifts:
            print(_format_shift(shift))
    elif args.command == "delete":
        services.shifts.delete(args.id)
        print(f"Shift {args.id} deleted.")


def handle_goals(args: argparse.Namespace, services: Services) -> None:
    if args.command == "set":
        goals = services.goals.update(
            {
                "daily": {"profit": args.daily_profit, "revenue": args.daily_revenue},
                "weekly": {"profit": args.weekly_profit, "revenue": args.weekly_revenue},
                "monthly": {"profit": args.monthly_profit, "revenue": args.monthly_revenue},
            }
        )
        print("Goals saved:")
        for bucket, targets in goals.to_dict().items():
            shown = ", ".join(f"{k} {format_currency(v)}" for k, v in targets.items()) or "-"
            print(f"  {bucket}: {shown}")
    elif args.command == "show":
        lines = services.ledger.goal_overview()
        if not lines:
            print("No goals set yet. Use 'goals set' to define them.")
            return
        for line in lines:
            progress = line.progress
            print(
                f"{line.bucket.capitalize()} {line.metric}: {format_currency(line.current)}"
                f" of {format_currency(progress.target)} ({progress.display_percent}%)"
            )


def handle_stats(args: argparse.Namespace, services: Services) -> None:
    dashboard = services.ledger.dashboard(_filter_from_args(args))
    stats = dashboard.stats
    print(f"Profit:   {format_currency(stats.profit)}")
    if dashboard.profit_progress:
        print(f"  Goal: {format_currency(dashboard.profit_progress.target)} "
              f"({dashboard.profit_progress.display_percent}%)")
    print(f"Revenue:  {format_currency(stats.revenue)}")
    if dashboard.revenue_progress:
        print(f"  Goal: {format_currency(dashboard.revenue_progress.target)} "
              f"({dashboard.revenue_progress.display_percent}%)")
    print(f"Expenses: {format_currency(stats.expenses)}")
    print(f"Hours worked: {format_hours_minutes(stats.total_duration_ms)}")
    print(
        f"Profit/h {format_currency(stats.profit_per_hour)} | "
        f"Profit/km {format_currency(stats.profit_per_km)} | "
        f"Profit/trip {format_currency(stats.profit_per_trip)}"
    )
    print(
        f"Revenue/h {format_currency(stats.revenue_per_hour)} | "
        f"Revenue/km {format_currency(stats.revenue_per_km)} | "
        f"Revenue/trip {format_currency(stats.revenue_per_trip)}"
    )
    print(
        f"Expenses/h {format_currency(stats.expenses_per_hour)} | "
        f"Expenses/km {format_currency(stats.expenses_per_km)} | "
        f"Expenses/trip {format_currency(stats.expenses_per_trip)}"
    )
    print(f"Total km: {format_number(stats.total_km, 0)} km")
    for fuel_type, consumption in stats.fuel_efficiency.items():
        print(f"{fuel_type.value} consumption: {format_number(consumption)} km/l")


def _describe(insight: Insight, detail: Callable[[Any], str]) -> str:
    if not insight.has_data:
        return "-  (insufficient data)"
    return f"{insight.value}  ({detail(insight.metric)})"


def handle_insights(args: argparse.Namespace, services: Services) -> None:
    insights = services.ledger.insights(_filter_from_args(args))
    print("Most profitable day: " + _describe(
        insights.most_profitable_day, lambda avg: f"average profit {format_currency(avg)}"
    ))
    print("Best platform: " + _describe(
        insights.best_platform, lambda rate: f"{format_currency(rate)} per trip"
    ))
    print("Most cost-effective fuel: " + _describe(
        insights.most_efficient_fuel, lambda rate: f"{format_currency(rate)} per km"
    ))
    print("Most used platform: " + _describe(
        insights.most_used_platform, lambda trips: f"{trips} trips"
    ))


def _write_or_print(text: str, output: Optional[Path], label: str) -> None:
    if output is None:
        sys.stdout.write(text)
        return
    output.write_text(text, encoding="utf-8")
    print(f"{label} written to {output}")


def handle_backup(args: argparse.Namespace, services: Services) -> None:
    if args.command == "export":
        _write_or_print(services.ledger.export_backup_json() + "\n", args.output, "Backup")
    elif args.command == "import":
        try:
            text = args.path.read_text(encoding="utf-8")
        except OSError as exc:
            raise BackupError(f"unable to read {args.path}: {exc}") from exc
        services.ledger.import_backup(text)
        print("Backup imported successfully.")


def handle_export(args: argparse.Namespace, services: Services) -> None:
    content = services.ledger.export_csv(_filter_from_args(args))
    output = args.output or Path(default_csv_filename())
    output.write_text(content, encoding="utf-8")
    print(f"CSV written to {output}")


def handle_report(args: argparse.Namespace, services: Services) -> None:
    _write_or_print(services.ledger.report(_filter_from_args(args)), args.output, "Report")


def handle_clear(args: argparse.Namespace, services: Services) -> None:
    if not args.yes:
        raise ValidationError("refusing to erase all data without --yes")
    services.ledger.clear_all()
    print("All entries, shifts and goals were erased.")


def _add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--period", choices=PERIODS, default="today")
    parser.add_argument("--start", help="Custom range start (YYYY-MM-DD)")
    parser.add_argument("--end", help="Custom range end (YYYY-MM-DD)")


def _add_fuel_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--fuel-type", choices=_choice_names(FuelType))
    parser.add_argument("--price-per-liter")
    parser.add_argument("--consumption", help="Average consumption in km per liter")
    parser.add_argument("--distance", help="Distance driven in km")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Constant Driver ledger CLI")
    parser.add_argument(
        "--data-dir",
        default=DEFAULT_DATA_DIR,
        type=Path,
        help="Directory to store JSON data (default: ./data)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    gain_parser = subparsers.add_parser("gain", help="Record earnings")
    gain_sub = gain_parser.add_subparsers(dest="command", required=True)

    gain_add = gain_sub.add_parser("add", help="Add a new gain")
    gain_add.add_argument("date", help="YYYY-MM-DD")
    gain_add.add_argument("amount")
    gain_add.add_argument("--platform", choices=_choice_names(Platform))
    gain_add.add_argument("--trips")
    gain_add.add_argument("--reward", action="store_true", help="Bonus without trips")
    gain_add.add_argument("--description")

    gain_edit = gain_sub.add_parser("edit", help="Edit an existing gain")
    gain_edit.add_argument("id")
    gain_edit.add_argument("--date")
    gain_edit.add_argument("--amount")
    gain_edit.add_argument("--platform", choices=_choice_names(Platform))
    gain_edit.add_argument("--trips")
    gain_edit.add_argument("--reward", action="store_true", default=None)
    gain_edit.add_argument("--no-reward", dest="reward", action="store_false")
    gain_edit.add_argument("--description")

    expense_parser = subparsers.add_parser("expense", help="Record costs")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("date", help="YYYY-MM-DD")
    expense_add.add_argument("--amount", help="Ignored for fuel; derived from fuel details")
    expense_add.add_argument(
        "--category", choices=_choice_names(ExpenseCategory), default="fuel"
    )
    expense_add.add_argument("--description")
    _add_fuel_arguments(expense_add)

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id")
    expense_edit.add_argument("--date")
    expense_edit.add_argument("--amount")
    expense_edit.add_argument("--category", choices=_choice_names(ExpenseCategory))
    expense_edit.add_argument("--description")
    _add_fuel_arguments(expense_edit)

    entry_parser = subparsers.add_parser("entry", help="List or delete entries")
    entry_sub = entry_parser.add_subparsers(dest="command", required=True)
    entry_list = entry_sub.add_parser("list", help="List entries in a period")
    _add_period_arguments(entry_list)
    entry_delete = entry_sub.add_parser("delete", help="Delete an entry")
    entry_delete.add_argument("id")

    shift_parser = subparsers.add_parser("shift", help="Track work shifts")
    shift_sub = shift_parser.add_subparsers(dest="command", required=True)
    for name, help_text in (("add", "Add a new shift"), ("edit", "Replace an existing shift")):
        shift_cmd = shift_sub.add_parser(name, help=help_text)
        if name == "edit":
            shift_cmd.add_argument("id")
        shift_cmd.add_argument("date", help="YYYY-MM-DD")
        shift_cmd.add_argument("start_time", help="HH:MM")
        shift_cmd.add_argument("end_time", help="HH:MM (earlier than start means next day)")
        shift_cmd.add_argument(
            "--pause", action="append", default=[], type=_parse_pause, help="HH:MM-HH:MM"
        )
    shift_list = shift_sub.add_parser("list", help="List shifts in a period")
    _add_period_arguments(shift_list)
    shift_delete = shift_sub.add_parser("delete", help="Delete a shift")
    shift_delete.add_argument("id")

    goals_parser = subparsers.add_parser("goals", help="Manage goals")
    goals_sub = goals_parser.add_subparsers(dest="command", required=True)
    goals_set = goals_sub.add_parser("set", help="Replace all goals (omitted targets are cleared)")
    for bucket in ("daily", "weekly", "monthly"):
        for metric in ("profit", "revenue"):
            goals_set.add_argument(f"--{bucket}-{metric}")
    goals_sub.add_parser("show", help="Show progress toward current goals")

    stats_parser = subparsers.add_parser("stats", help="Show period statistics")
    _add_period_arguments(stats_parser)

    insights_parser = subparsers.add_parser("insights", help="Show performance insights")
    _add_period_arguments(insights_parser)

    backup_parser = subparsers.add_parser("backup", help="Export or import a JSON backup")
    backup_sub = backup_parser.add_subparsers(dest="command", required=True)
    backup_export = backup_sub.add_parser("export", help="Write a backup")
    backup_export.add_argument("--output", type=Path)
    backup_import = backup_sub.add_parser("import", help="Replace all data with a backup")
    backup_import.add_argument("path", type=Path)

    export_parser = subparsers.add_parser("export", help="Export history")
    export_sub = export_parser.add_subparsers(dest="command", required=True)
    export_csv = export_sub.add_parser("csv", help="Export history as CSV")
    _add_period_arguments(export_csv)
    export_csv.add_argument("--output", type=Path)

    report_parser = subparsers.add_parser("report", help="Render a printable HTML report")
    _add_period_arguments(report_parser)
    report_parser.add_argument("--output", type=Path)

    clear_parser = subparsers.add_parser("clear", help="Erase all data")
    clear_parser.add_argument("--yes", action="store_true")

    return parser


HANDLERS = {
    "gain": handle_gain,
    "expense": handle_expense,
    "entry": handle_entry,
    "shift": handle_shift,
    "goals": handle_goals,
    "stats": handle_stats,
    "insights": handle_insights,
    "backup": handle_backup,
    "export": handle_export,
    "report": handle_report,
    "clear": handle_clear,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        services = Services(args.data_dir)
        HANDLERS[args.entity](args, services)
    except BackupError as exc:
        print(f"Import failed: {exc}", file=sys.stderr)
        return 1
    except EmptyExportError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
