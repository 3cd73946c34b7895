"""Validation helpers shared across driver ledger services."""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Type, TypeVar

from .exceptions import ValidationError
from .timeutils import parse_naive_utc

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_PATTERN = re.compile(r"^\d{1,2}:\d{2}$")

# Entries recorded from a date-only input are pinned to midday of that day.
ENTRY_DEFAULT_TIME = time(12, 0)

E = TypeVar("E", bound=Enum)


def _quantize_two_decimals(amount: Decimal, field: str) -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    try:
        return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # More digits than the decimal context can hold.
        raise ValidationError(f"{field} is too large") from exc


def _to_decimal(raw: object, field: str) -> Decimal:
    if isinstance(raw, str):
        # Accept the locale's decimal comma ("12,50").
        raw = raw.strip().replace(",", ".")
    try:
        value = Decimal(str(raw))
    except (InvalidOperation, TypeError) as exc:  # type: ignore[arg-type]
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not value.is_finite():
        raise ValidationError(f"{field} must be a numeric value")
    return value


def parse_amount(raw: object, field: str) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    amount = _to_decimal(raw, field)
    if amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return _quantize_two_decimals(amount, field)


def quantize_amount(amount: Decimal, field: str = "amount") -> Decimal:
    return _quantize_two_decimals(amount, field)


def parse_positive_decimal(raw: object, field: str) -> Decimal:
    value = _to_decimal(raw, field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    return value


def parse_optional_target(raw: object, field: str) -> Optional[Decimal]:
    """Goal targets: blank means unset, otherwise a non-negative amount."""
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    value = _to_decimal(raw, field)
    if value < 0:
        raise ValidationError(f"{field} must not be negative")
    return _quantize_two_decimals(value, field)


def parse_trip_count(raw: object, field: str = "tripCount") -> Optional[int]:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if isinstance(raw, bool):
        raise ValidationError(f"{field} must be a whole number")
    try:
        count = int(str(raw).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be a whole number") from exc
    if count < 0:
        raise ValidationError(f"{field} must not be negative")
    return count


def validate_optional_str(value: object, field: str, max_length: int) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_choice(value: object, field: str, choices: Type[E], default: Optional[E] = None) -> E:
    """Resolve an enum member from its name (any case) or its stored value."""
    if value is None or value == "":
        if default is not None:
            return default
        raise ValidationError(f"{field} is required")
    if isinstance(value, choices):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    candidate = value.strip()
    for member in choices:
        if candidate == member.value or candidate.upper() == member.name:
            return member
    names = ", ".join(member.name.lower() for member in choices)
    raise ValidationError(f"{field} must be one of: {names}")


def validate_bool(value: object, field: str) -> bool:
    if value is None or value == "":
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in {"true", "1", "yes", "y"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"false", "0", "no", "n"}:
        return False
    raise ValidationError(f"{field} must be a boolean")


def parse_date_input(value: object, field: str) -> date:
    """Parse a ``YYYY-MM-DD`` form value."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if not DATE_PATTERN.fullmatch(text):
        raise ValidationError(f"{field} must use the YYYY-MM-DD format")
    try:
        return date.fromisoformat(text)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid calendar date") from exc


def parse_time_input(value: object, field: str) -> time:
    """Parse an ``HH:MM`` form value."""
    if isinstance(value, time):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    text = value.strip()
    if not TIME_PATTERN.fullmatch(text):
        raise ValidationError(f"{field} must use the HH:MM format")
    hours, minutes = (int(part) for part in text.split(":"))
    try:
        return time(hours, minutes)
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid time of day") from exc


def validate_entry_datetime(value: object, field: str = "date") -> datetime:
    """Accept a date-only input (pinned to midday), a stored timestamp, or a datetime."""
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime.combine(value, ENTRY_DEFAULT_TIME)
    if isinstance(value, str) and DATE_PATTERN.fullmatch(value.strip()):
        return datetime.combine(parse_date_input(value, field), ENTRY_DEFAULT_TIME)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    try:
        return parse_naive_utc(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be YYYY-MM-DD or an ISO 8601 timestamp") from exc
