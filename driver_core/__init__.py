"""Core business logic package for the driver ledger."""

from .models import (
    EntryType,
    ExpenseCategory,
    ExpenseEntry,
    Filter,
    FuelDetails,
    FuelType,
    GainEntry,
    Goals,
    GoalTargets,
    Pause,
    Platform,
    Shift,
)
from .periods import DateRange, resolve_period
from .services import EntryService, GoalService, LedgerService, ShiftService
from .storage import JSONStorage, MemoryStorage
from .exceptions import (
    BackupError,
    EmptyExportError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)

__all__ = [
    "DateRange",
    "EntryType",
    "ExpenseCategory",
    "ExpenseEntry",
    "Filter",
    "FuelDetails",
    "FuelType",
    "GainEntry",
    "Goals",
    "GoalTargets",
    "Pause",
    "Platform",
    "Shift",
    "EntryService",
    "GoalService",
    "LedgerService",
    "ShiftService",
    "JSONStorage",
    "MemoryStorage",
    "BackupError",
    "EmptyExportError",
    "PersistenceError",
    "RecordNotFoundError",
    "ValidationError",
    "resolve_period",
]
