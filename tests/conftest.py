"""Shared fixtures for the driver ledger tests."""

from datetime import datetime
from decimal import Decimal

import pytest

from driver_core.models import (
    ExpenseCategory,
    ExpenseEntry,
    FuelDetails,
    FuelType,
    GainEntry,
    Pause,
    Platform,
    Shift,
)
from driver_core.services import EntryService, GoalService, LedgerService, ShiftService
from driver_core.storage import MemoryStorage
from driver_core.validators import quantize_amount

# Wednesday afternoon.
NOW = datetime(2024, 5, 15, 14, 30)


def fixed_clock():
    return NOW


def make_gain(amount, when, platform=Platform.UBER, trips=None, reward=False, entry_id=None):
    return GainEntry(
        id=entry_id or f"g-{when:%Y%m%d%H%M}-{amount}",
        amount=Decimal(str(amount)),
        date=when,
        platform=platform,
        trip_count=trips,
        is_reward=reward,
    )


def make_expense(amount, when, category=ExpenseCategory.FOOD, description="", entry_id=None):
    return ExpenseEntry(
        id=entry_id or f"e-{when:%Y%m%d%H%M}-{amount}",
        amount=Decimal(str(amount)),
        date=when,
        category=category,
        description=description,
    )


def make_fuel(price, consumption, distance, when, fuel_type=FuelType.ETHANOL, entry_id=None):
    details = FuelDetails(
        fuel_type=fuel_type,
        price_per_liter=Decimal(str(price)),
        avg_consumption=Decimal(str(consumption)),
        distance_driven=Decimal(str(distance)),
    )
    return ExpenseEntry(
        id=entry_id or f"f-{when:%Y%m%d%H%M}-{distance}",
        amount=quantize_amount(details.cost),
        date=when,
        category=ExpenseCategory.FUEL,
        fuel_details=details,
    )


def make_shift(start, end, pauses=(), shift_id="s-1"):
    return Shift(
        id=shift_id,
        start=start,
        end=end,
        pauses=[Pause(start=p_start, end=p_end) for p_start, p_end in pauses],
    )


@pytest.fixture
def clock():
    return fixed_clock


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def entry_service(storage):
    return EntryService(storage)


@pytest.fixture
def shift_service(storage):
    return ShiftService(storage)


@pytest.fixture
def goal_service(storage):
    return GoalService(storage)


@pytest.fixture
def ledger(entry_service, shift_service, goal_service, clock):
    return LedgerService(entry_service, shift_service, goal_service, clock=clock)
