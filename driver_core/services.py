"""Framework-agnostic business services for the driver ledger."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Union
from uuid import uuid4

from .exceptions import BackupError, PersistenceError, RecordNotFoundError, ValidationError
from .exports import HistoryItem, combine_history, render_csv, render_report
from .goals import GoalProgress, goal_bucket_for, goal_progress, goal_targets_for
from .models import (
    GOAL_BUCKETS,
    Entry,
    EntryType,
    ExpenseCategory,
    ExpenseEntry,
    Filter,
    FuelDetails,
    FuelType,
    GainEntry,
    GoalTargets,
    Goals,
    Pause,
    Platform,
    Shift,
    entry_from_dict,
)
from .periods import Clock, DateRange, local_now
from .stats import FilteredRecords, Insights, PeriodStats, compute_insights, compute_stats, filter_records
from .validators import (
    parse_amount,
    parse_date_input,
    parse_optional_target,
    parse_positive_decimal,
    parse_time_input,
    parse_trip_count,
    quantize_amount,
    validate_bool,
    validate_choice,
    validate_entry_datetime,
    validate_optional_str,
)

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1
BACKUP_KEYS = ("entries", "shifts", "goals")
FUEL_DETAILS_MESSAGE = "fuel details require positive price per liter, consumption and distance"


class Storage(Protocol):
    def load(self, resource: str, default: Any) -> Any: ...

    def save(self, resource: str, payload: Any) -> None: ...


class EntryService:
    """Manages gain and expense entries and mediates persistence."""

    def __init__(self, storage: Storage, resource: str = "entries.json") -> None:
        self._storage = storage
        self._resource = resource
        self._entries: Dict[str, Entry] = {}
        self.load()

    # Public API -----------------------------------------------------------
    def add(self, payload: Mapping[str, object]) -> Entry:
        entry = self._validate_payload(payload)
        self._entries[entry.id] = entry
        self._persist()
        logger.info("Added %s entry %s (%s)", entry.type.value, entry.id, entry.amount)
        return entry

    def update(self, entry_id: str, changes: Mapping[str, object]) -> Entry:
        existing = self._get_or_raise(entry_id)
        # Partial update: incoming keys override the stored document.
        merged_payload = {**existing.to_dict(), **changes}
        updated = self._validate_payload(merged_payload, current=existing)
        self._entries[entry_id] = updated
        self._persist()
        logger.info("Updated entry %s", entry_id)
        return updated

    def delete(self, entry_id: str) -> None:
        self._get_or_raise(entry_id)
        del self._entries[entry_id]
        self._persist()
        logger.info("Deleted entry %s", entry_id)

    def get(self, entry_id: str) -> Entry:
        """Return an entry or raise if it does not exist."""
        return self._get_or_raise(entry_id)

    def list(self) -> List[Entry]:
        """All entries, newest first."""
        return sorted(self._entries.values(), key=lambda entry: entry.date, reverse=True)

    def replace(self, entries: Iterable[Entry]) -> None:
        """Swap the whole collection, as a backup restore does."""
        self._entries = {entry.id: entry for entry in entries}
        self._persist()

    def load(self) -> None:
        """Load existing entries from persistence."""
        raw_records = self._storage.load(self._resource, [])
        self._entries = {}
        for payload in raw_records:
            entry = entry_from_dict(payload)
            self._entries[entry.id] = entry

    # Internal helpers -----------------------------------------------------
    def _persist(self) -> None:
        try:
            self._storage.save(self._resource, [entry.to_dict() for entry in self.list()])
        except PersistenceError:
            raise
        except Exception as exc:  # pragma: no cover
            raise PersistenceError("Unexpected error while saving entries") from exc

    def _get_or_raise(self, entry_id: str) -> Entry:
        try:
            return self._entries[entry_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Entry {entry_id} not found") from exc

    def _validate_payload(
        self, payload: Mapping[str, object], *, current: Optional[Entry] = None
    ) -> Entry:
        entry_type = validate_choice(payload.get("type"), "type", EntryType)
        entry_id = current.id if current else str(uuid4())
        when = validate_entry_datetime(payload.get("date"), "date")
        description = validate_optional_str(payload.get("description"), "description", 200)

        if entry_type is EntryType.GAIN:
            is_reward = validate_bool(payload.get("isReward"), "isReward")
            return GainEntry(
                id=entry_id,
                amount=parse_amount(payload.get("amount"), "amount"),
                date=when,
                platform=validate_choice(
                    payload.get("platform"), "platform", Platform, Platform.UBER
                ),
                description=description,
                # A reward is a lump sum; it never counts trips.
                trip_count=None if is_reward else parse_trip_count(payload.get("tripCount")),
                is_reward=is_reward,
            )

        category = validate_choice(
            payload.get("category"), "category", ExpenseCategory, ExpenseCategory.FUEL
        )
        fuel_details: Optional[FuelDetails] = None
        if category is ExpenseCategory.FUEL:
            fuel_details = _validate_fuel_details(payload.get("fuelDetails"))
            amount = quantize_amount(fuel_details.cost)
            if amount <= 0:
                raise ValidationError("amount must be greater than zero")
        else:
            amount = parse_amount(payload.get("amount"), "amount")
        return ExpenseEntry(
            id=entry_id,
            amount=amount,
            date=when,
            category=category,
            description=description,
            fuel_details=fuel_details,
        )


def _validate_fuel_details(raw: object) -> FuelDetails:
    if not isinstance(raw, Mapping):
        raise ValidationError(FUEL_DETAILS_MESSAGE)
    try:
        values = {
            name: parse_positive_decimal(raw.get(name), name)
            for name in ("pricePerLiter", "avgConsumption", "distanceDriven")
        }
    except ValidationError as exc:
        raise ValidationError(FUEL_DETAILS_MESSAGE) from exc
    return FuelDetails(
        fuel_type=validate_choice(raw.get("fuelType"), "fuelType", FuelType, FuelType.ETHANOL),
        price_per_liter=values["pricePerLiter"],
        avg_consumption=values["avgConsumption"],
        distance_driven=values["distanceDriven"],
    )


def _at(day: date, clock_time: time) -> datetime:
    return datetime.combine(day, clock_time)


def build_shift(
    shift_id: str,
    day: date,
    start: time,
    end: time,
    pauses: Iterable[Mapping[str, object]] = (),
) -> Shift:
    """Assemble a shift from one date and clock times, rolling past midnight as needed.

    An end earlier than the start belongs to the next day. A pause that begins
    before the shift does is moved whole to the next day, and a pause whose end is
    earlier than its start ends on the following day. Pauses missing either bound
    are dropped.
    """
    next_day = timedelta(days=1)
    shift_start = _at(day, start)
    shift_end = _at(day, end)
    if shift_end < shift_start:
        shift_end += next_day

    built: List[Pause] = []
    for index, raw in enumerate(pauses):
        raw_start, raw_end = raw.get("start"), raw.get("end")
        if not raw_start or not raw_end:
            continue
        pause_start = _at(day, parse_time_input(raw_start, f"pauses[{index}].start"))
        pause_end = _at(day, parse_time_input(raw_end, f"pauses[{index}].end"))
        if pause_start < shift_start:
            pause_start += next_day
            pause_end += next_day
        if pause_end < pause_start:
            pause_end += next_day
        built.append(Pause(start=pause_start, end=pause_end))

    return Shift(id=shift_id, start=shift_start, end=shift_end, pauses=built)


class ShiftService:
    """Manages work shifts and mediates persistence."""

    def __init__(self, storage: Storage, resource: str = "shifts.json") -> None:
        self._storage = storage
        self._resource = resource
        self._shifts: Dict[str, Shift] = {}
        self.load()

    def add(self, payload: Mapping[str, object]) -> Shift:
        shift = self._validate_payload(payload)
        self._shifts[shift.id] = shift
        self._persist()
        logger.info("Added shift %s starting %s", shift.id, shift.start)
        return shift

    def update(self, shift_id: str, payload: Mapping[str, object]) -> Shift:
        """Replace a shift wholesale, keeping its id."""
        existing = self._get_or_raise(shift_id)
        updated = self._validate_payload(payload, current=existing)
        self._shifts[shift_id] = updated
        self._persist()
        logger.info("Updated shift %s", shift_id)
        return updated

    def delete(self, shift_id: str) -> None:
        self._get_or_raise(shift_id)
        del self._shifts[shift_id]
        self._persist()
        logger.info("Deleted shift %s", shift_id)

    def get(self, shift_id: str) -> Shift:
        return self._get_or_raise(shift_id)

    def list(self) -> List[Shift]:
        """All shifts, most recent start first."""
        return sorted(
            self._shifts.values(), key=lambda shift: shift.start or datetime.min, reverse=True
        )

    def replace(self, shifts: Iterable[Shift]) -> None:
        self._shifts = {shift.id: shift for shift in shifts}
        self._persist()

    def load(self) -> None:
        raw_records = self._storage.load(self._resource, [])
        self._shifts = {}
        for payload in raw_records:
            shift = Shift.from_dict(payload)
            self._shifts[shift.id] = shift

    def _persist(self) -> None:
        try:
            self._storage.save(self._resource, [shift.to_dict() for shift in self.list()])
        except PersistenceError:
            raise
        except Exception as exc:  # pragma: no cover
            raise PersistenceError("Unexpected error while saving shifts") from exc

    def _get_or_raise(self, shift_id: str) -> Shift:
        try:
            return self._shifts[shift_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"Shift {shift_id} not found") from exc

    def _validate_payload(
        self, payload: Mapping[str, object], *, current: Optional[Shift] = None
    ) -> Shift:
        if not payload.get("date") or not payload.get("start") or not payload.get("end"):
            raise ValidationError("date, start and end of the shift are required")
        pauses = payload.get("pauses")
        if pauses is None:
            pauses = []
        if not isinstance(pauses, list) or not all(isinstance(p, Mapping) for p in pauses):
            raise ValidationError("pauses must be a list of {start, end} objects")
        return build_shift(
            shift_id=current.id if current else str(uuid4()),
            day=parse_date_input(payload.get("date"), "date"),
            start=parse_time_input(payload.get("start"), "start"),
            end=parse_time_input(payload.get("end"), "end"),
            pauses=pauses,
        )


class GoalService:
    """Holds the daily/weekly/monthly targets; always replaced wholesale."""

    def __init__(self, storage: Storage, resource: str = "goals.json") -> None:
        self._storage = storage
        self._resource = resource
        self._goals = Goals()
        self.load()

    def get(self) -> Goals:
        return self._goals

    def update(self, payload: Mapping[str, object]) -> Goals:
        self._goals = self._validate_payload(payload)
        self._persist()
        logger.info("Replaced goals: %s", self._goals.to_dict())
        return self._goals

    def replace(self, goals: Goals) -> None:
        self._goals = goals
        self._persist()

    def load(self) -> None:
        self._goals = Goals.from_dict(self._storage.load(self._resource, Goals().to_dict()))

    def _persist(self) -> None:
        try:
            self._storage.save(self._resource, self._goals.to_dict())
        except PersistenceError:
            raise
        except Exception as exc:  # pragma: no cover
            raise PersistenceError("Unexpected error while saving goals") from exc

    @staticmethod
    def _validate_payload(payload: Mapping[str, object]) -> Goals:
        if not isinstance(payload, Mapping):
            raise ValidationError("goals must be an object")
        unknown = set(payload) - set(GOAL_BUCKETS)
        if unknown:
            raise ValidationError(
                f"goal bucket must be one of: {', '.join(GOAL_BUCKETS)}"
            )
        buckets: Dict[str, GoalTargets] = {}
        for name in GOAL_BUCKETS:
            raw = payload.get(name) or {}
            if not isinstance(raw, Mapping):
                raise ValidationError(f"{name} goals must be an object")
            buckets[name] = GoalTargets(
                profit=parse_optional_target(raw.get("profit"), f"{name}.profit"),
                revenue=parse_optional_target(raw.get("revenue"), f"{name}.revenue"),
            )
        return Goals(**buckets)


@dataclass(frozen=True)
class Dashboard:
    filter: Filter
    range: DateRange
    stats: PeriodStats
    goal_bucket: Optional[str]
    profit_progress: Optional[GoalProgress]
    revenue_progress: Optional[GoalProgress]


@dataclass(frozen=True)
class GoalLine:
    bucket: str
    metric: str
    current: Decimal
    progress: GoalProgress


# The goals screen always measures each bucket against its calendar period.
OVERVIEW_PERIODS = (("daily", "today"), ("weekly", "this_week"), ("monthly", "this_month"))


class LedgerService:
    """Aggregates entries, shifts and goals for a selected period."""

    def __init__(
        self,
        entry_service: EntryService,
        shift_service: ShiftService,
        goal_service: GoalService,
        clock: Optional[Clock] = None,
    ) -> None:
        self._entries = entry_service
        self._shifts = shift_service
        self._goals = goal_service
        self._clock = clock or local_now

    def filtered(self, period_filter: Filter) -> FilteredRecords:
        return filter_records(
            period_filter, self._entries.list(), self._shifts.list(), self._clock
        )

    def stats(self, period_filter: Filter) -> PeriodStats:
        selection = self.filtered(period_filter)
        return compute_stats(selection.entries, selection.shifts)

    def insights(self, period_filter: Filter) -> Insights:
        return compute_insights(self.filtered(period_filter).entries)

    def dashboard(self, period_filter: Filter) -> Dashboard:
        """Stats for the period together with progress toward its goal bucket."""
        selection = self.filtered(period_filter)
        stats = compute_stats(selection.entries, selection.shifts)
        targets = goal_targets_for(period_filter, self._goals.get())
        return Dashboard(
            filter=period_filter,
            range=selection.range,
            stats=stats,
            goal_bucket=goal_bucket_for(period_filter),
            profit_progress=goal_progress(stats.profit, targets.profit) if targets else None,
            revenue_progress=goal_progress(stats.revenue, targets.revenue) if targets else None,
        )

    def goal_overview(self) -> List[GoalLine]:
        """Every goal with a positive target, measured against its calendar period."""
        goals = self._goals.get()
        lines: List[GoalLine] = []
        for bucket, period in OVERVIEW_PERIODS:
            stats = self.stats(Filter(period=period))
            targets = goals.bucket(bucket)
            for metric in ("profit", "revenue"):
                current = getattr(stats, metric)
                progress = goal_progress(current, getattr(targets, metric))
                if progress is not None:
                    lines.append(GoalLine(bucket, metric, current, progress))
        return lines

    def history(self, period_filter: Filter) -> List[HistoryItem]:
        selection = self.filtered(period_filter)
        return combine_history(selection.entries, selection.shifts)

    def export_csv(self, period_filter: Filter) -> str:
        selection = self.filtered(period_filter)
        return render_csv(selection.entries, selection.shifts)

    def report(self, period_filter: Filter) -> str:
        selection = self.filtered(period_filter)
        return render_report(selection, generated_at=self._clock())

    def clear_all(self) -> None:
        self._entries.replace([])
        self._shifts.replace([])
        self._goals.replace(Goals())
        logger.info("Cleared all entries, shifts and goals")

    def export_backup(self) -> Dict[str, object]:
        """Return the versioned backup document."""
        return {
            "entries": [entry.to_dict() for entry in self._entries.list()],
            "shifts": [shift.to_dict() for shift in self._shifts.list()],
            "goals": self._goals.get().to_dict(),
            "version": BACKUP_VERSION,
        }

    def export_backup_json(self) -> str:
        return json.dumps(self.export_backup(), indent=2, ensure_ascii=False)

    def import_backup(self, raw: Union[str, bytes, Mapping[str, Any]]) -> None:
        """Replace all data with a backup; a rejected backup changes nothing."""
        try:
            data = json.loads(raw) if isinstance(raw, (str, bytes)) else raw
            if not isinstance(data, Mapping) or not all(key in data for key in BACKUP_KEYS):
                raise BackupError("invalid or corrupted backup file: missing entries, shifts or goals")
            if not isinstance(data["entries"], list) or not isinstance(data["shifts"], list):
                raise BackupError("invalid or corrupted backup file: entries and shifts must be lists")
            if not isinstance(data["goals"], Mapping):
                raise BackupError("invalid or corrupted backup file: goals must be an object")
            try:
                entries = [entry_from_dict(item) for item in data["entries"]]
                shifts = [Shift.from_dict(item) for item in data["shifts"]]
                goals = Goals.from_dict(data["goals"])
            except (KeyError, TypeError, ValueError, AttributeError, InvalidOperation) as exc:
                raise BackupError(f"backup contains an invalid record: {exc}") from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.warning("Rejected backup: %s", exc)
            raise BackupError(f"backup is not valid JSON: {exc}") from exc
        except BackupError as exc:
            logger.warning("Rejected backup: %s", exc)
            raise

        previous = (self._entries.list(), self._shifts.list(), self._goals.get())
        try:
            self._replace_all(entries, shifts, goals)
        except PersistenceError:
            logger.error("Backup import failed while saving, restoring previous data")
            self._replace_all(*previous)
            raise
        logger.info("Imported backup with %d entries and %d shifts", len(entries), len(shifts))

    def _replace_all(
        self, entries: Iterable[Entry], shifts: Iterable[Shift], goals: Goals
    ) -> None:
        self._entries.replace(entries)
        self._shifts.replace(shifts)
        self._goals.replace(goals)
