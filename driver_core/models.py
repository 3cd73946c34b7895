"""Data models for the driver ledger domain."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .exceptions import ValidationError
from .timeutils import parse_naive_utc, to_naive_utc_iso_string

__all__ = [
    "Entry",
    "EntryType",
    "ExpenseCategory",
    "ExpenseEntry",
    "Filter",
    "FuelDetails",
    "FuelType",
    "GainEntry",
    "GOAL_BUCKETS",
    "GoalTargets",
    "Goals",
    "Pause",
    "Platform",
    "Shift",
    "entry_from_dict",
]


class EntryType(str, Enum):
    GAIN = "GAIN"
    EXPENSE = "EXPENSE"


class FuelType(str, Enum):
    ETHANOL = "Etanol"
    GASOLINE = "Gasolina"


class Platform(str, Enum):
    UBER = "Uber"
    NINE_NINE = "99"
    PARTICULAR = "Particular"


class ExpenseCategory(str, Enum):
    FUEL = "Combustível"
    RENTAL = "Aluguel de Veículo"
    WASHING = "Lavagem"
    MAINTENANCE = "Manutenção"
    FOOD = "Alimentação"
    TOLLS = "Pedágios"
    OTHER = "Outros"


GOAL_BUCKETS = ("daily", "weekly", "monthly")


def _decimal(raw: Any) -> Decimal:
    return Decimal(str(raw))


def _optional_decimal(raw: Any) -> Optional[Decimal]:
    if raw is None or raw == "":
        return None
    return _decimal(raw)


def _plain(value: Decimal) -> str:
    """Render a measured value without exponent noise (``Decimal('3E+2')`` -> ``'300'``)."""
    return format(value.normalize(), "f")


@dataclass(frozen=True)
class FuelDetails:
    fuel_type: FuelType
    price_per_liter: Decimal
    avg_consumption: Decimal
    distance_driven: Decimal

    def __post_init__(self) -> None:
        for name in ("price_per_liter", "avg_consumption", "distance_driven"):
            if getattr(self, name) <= 0:
                raise ValidationError(f"{name} must be greater than zero")

    @property
    def liters(self) -> Decimal:
        return self.distance_driven / self.avg_consumption

    @property
    def cost(self) -> Decimal:
        """Fuel cost implied by the details: liters burned times price per liter."""
        return self.liters * self.price_per_liter

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fuelType": self.fuel_type.value,
            "pricePerLiter": _plain(self.price_per_liter),
            "avgConsumption": _plain(self.avg_consumption),
            "distanceDriven": _plain(self.distance_driven),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FuelDetails":
        return cls(
            fuel_type=FuelType(data["fuelType"]),
            price_per_liter=_decimal(data["pricePerLiter"]),
            avg_consumption=_decimal(data["avgConsumption"]),
            distance_driven=_decimal(data["distanceDriven"]),
        )


@dataclass(frozen=True)
class GainEntry:
    id: str
    amount: Decimal
    date: datetime
    platform: Optional[Platform] = None
    description: str = ""
    trip_count: Optional[int] = None
    is_reward: bool = False

    def __post_init__(self) -> None:
        if self.is_reward and self.trip_count is not None:
            raise ValidationError("a reward gain cannot carry a trip count")
        if self.trip_count is not None and self.trip_count < 0:
            raise ValidationError("tripCount must not be negative")

    @property
    def type(self) -> EntryType:
        return EntryType.GAIN

    @property
    def counts_trips(self) -> bool:
        """True when this gain contributes trips to per-trip rates."""
        return not self.is_reward and bool(self.trip_count)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the gain to JSON-friendly natives."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "amount": f"{self.amount:.2f}",
            "date": to_naive_utc_iso_string(self.date),
            "description": self.description,
            "platform": self.platform.value if self.platform else None,
            "isReward": self.is_reward,
        }
        if self.trip_count is not None:
            payload["tripCount"] = self.trip_count
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GainEntry":
        """Hydrate a GainEntry from JSON-native data."""
        trip_count = data.get("tripCount")
        is_reward = bool(data.get("isReward"))
        return cls(
            id=str(data["id"]),
            amount=_decimal(data["amount"]),
            date=parse_naive_utc(data["date"]),
            platform=Platform(data["platform"]) if data.get("platform") else None,
            description=data.get("description") or "",
            trip_count=None if is_reward or trip_count in (None, "") else int(trip_count),
            is_reward=is_reward,
        )


@dataclass(frozen=True)
class ExpenseEntry:
    id: str
    amount: Decimal
    date: datetime
    category: ExpenseCategory
    description: str = ""
    fuel_details: Optional[FuelDetails] = None

    def __post_init__(self) -> None:
        if self.category is ExpenseCategory.FUEL and self.fuel_details is None:
            raise ValidationError("fuel expenses require fuel details")
        if self.category is not ExpenseCategory.FUEL and self.fuel_details is not None:
            raise ValidationError("only fuel expenses may carry fuel details")

    @property
    def type(self) -> EntryType:
        return EntryType.EXPENSE

    @property
    def is_fuel(self) -> bool:
        return self.fuel_details is not None

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "amount": f"{self.amount:.2f}",
            "date": to_naive_utc_iso_string(self.date),
            "description": self.description,
            "category": self.category.value,
        }
        if self.fuel_details is not None:
            payload["fuelDetails"] = self.fuel_details.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpenseEntry":
        """Hydrate an ExpenseEntry from JSON-native data."""
        fuel = data.get("fuelDetails")
        return cls(
            id=str(data["id"]),
            amount=_decimal(data["amount"]),
            date=parse_naive_utc(data["date"]),
            category=ExpenseCategory(data.get("category") or ExpenseCategory.OTHER.value),
            description=data.get("description") or "",
            fuel_details=FuelDetails.from_dict(fuel) if fuel else None,
        )


Entry = Union[GainEntry, ExpenseEntry]


def entry_from_dict(data: Dict[str, Any]) -> Entry:
    """Dispatch on the ``type`` tag to the matching entry class."""
    kind = data.get("type")
    if kind == EntryType.GAIN.value:
        return GainEntry.from_dict(data)
    if kind == EntryType.EXPENSE.value:
        return ExpenseEntry.from_dict(data)
    raise ValidationError(f"Unknown entry type: {kind!r}")


@dataclass(frozen=True)
class Pause:
    start: Optional[datetime]
    end: Optional[datetime]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start": to_naive_utc_iso_string(self.start) if self.start else "",
            "end": to_naive_utc_iso_string(self.end) if self.end else "",
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pause":
        start, end = data.get("start"), data.get("end")
        return cls(
            start=parse_naive_utc(start) if start else None,
            end=parse_naive_utc(end) if end else None,
        )


@dataclass(frozen=True)
class Shift:
    id: str
    start: Optional[datetime]
    end: Optional[datetime] = None
    pauses: List[Pause] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the shift to JSON-friendly natives."""
        payload: Dict[str, Any] = {
            "id": self.id,
            "start": to_naive_utc_iso_string(self.start) if self.start else "",
            "pauses": [pause.to_dict() for pause in self.pauses],
        }
        if self.end is not None:
            payload["end"] = to_naive_utc_iso_string(self.end)
        return payload

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Shift":
        """Hydrate a Shift from JSON-native data."""
        start, end = data.get("start"), data.get("end")
        return cls(
            id=str(data["id"]),
            start=parse_naive_utc(start) if start else None,
            end=parse_naive_utc(end) if end else None,
            pauses=[Pause.from_dict(raw) for raw in data.get("pauses") or []],
        )


@dataclass(frozen=True)
class GoalTargets:
    profit: Optional[Decimal] = None
    revenue: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.profit is not None:
            payload["profit"] = f"{self.profit:.2f}"
        if self.revenue is not None:
            payload["revenue"] = f"{self.revenue:.2f}"
        return payload

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "GoalTargets":
        data = data or {}
        return cls(
            profit=_optional_decimal(data.get("profit")),
            revenue=_optional_decimal(data.get("revenue")),
        )


@dataclass(frozen=True)
class Goals:
    daily: GoalTargets = field(default_factory=GoalTargets)
    weekly: GoalTargets = field(default_factory=GoalTargets)
    monthly: GoalTargets = field(default_factory=GoalTargets)

    def bucket(self, name: str) -> GoalTargets:
        if name not in GOAL_BUCKETS:
            raise ValidationError(f"goal bucket must be one of: {', '.join(GOAL_BUCKETS)}")
        return getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        return {name: self.bucket(name).to_dict() for name in GOAL_BUCKETS}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Goals":
        data = data or {}
        return cls(**{name: GoalTargets.from_dict(data.get(name)) for name in GOAL_BUCKETS})


@dataclass(frozen=True)
class Filter:
    """Query state selecting a period; custom bounds are ``YYYY-MM-DD`` strings."""

    period: str = "today"
    custom_start: Optional[str] = None
    custom_end: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period,
            "customRange": {"start": self.custom_start or "", "end": self.custom_end or ""},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Filter":
        custom = data.get("customRange") or {}
        return cls(
            period=data.get("period") or "today",
            custom_start=custom.get("start") or None,
            custom_end=custom.get("end") or None,
        )
