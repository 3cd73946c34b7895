"""Wall-clock timestamp helpers and fixed-locale display formatting.

Timestamps are stored as "naive UTC" ISO 8601 strings: the calendar and clock
fields of the user's local date-time, written as if they were UTC fields. They are
never converted between offsets, so a record shows the same date and time on any
machine. In memory the same values are plain naive ``datetime`` objects.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP, localcontext
from typing import Optional, Union

__all__ = [
    "EPOCH",
    "format_currency",
    "format_date_from_naive_utc",
    "format_duration",
    "format_hours_minutes",
    "format_number",
    "format_time_from_naive_utc",
    "local_date_iso_string",
    "parse_naive_utc",
    "to_naive_utc_iso_string",
]

EPOCH = datetime(1970, 1, 1)

CURRENCY_SYMBOL = "R$"

Number = Union[Decimal, int, float, str, None]


def to_naive_utc_iso_string(value: datetime) -> str:
    """Encode the wall-clock fields of ``value`` as a ``YYYY-MM-DDTHH:MM:SS.mmmZ`` string.

    Any ``tzinfo`` is discarded without conversion: the fields are what the user
    saw, and those are what gets stored.
    """
    value = value.replace(tzinfo=None)
    millis = value.microsecond // 1000
    return f"{value:%Y-%m-%dT%H:%M:%S}.{millis:03d}Z"


def parse_naive_utc(value: str) -> datetime:
    """Parse a stored timestamp back into a naive datetime carrying the same fields."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is not None:
        # Only a foreign offset is normalised; "Z" and "+00:00" keep their fields.
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def format_date_from_naive_utc(iso_string: Optional[str]) -> str:
    """Return ``DD/MM/YYYY`` read straight from the calendar part of the string."""
    if not isinstance(iso_string, str) or "T" not in iso_string:
        return ""
    parts = iso_string.split("T")[0].split("-")
    if len(parts) != 3:
        return ""
    year, month, day = parts
    return f"{day}/{month}/{year}"


def format_time_from_naive_utc(iso_string: Optional[str]) -> str:
    """Return ``HH:mm`` read straight from the clock part of the string."""
    if not isinstance(iso_string, str) or "T" not in iso_string:
        return ""
    return iso_string.split("T")[1][:5]


def local_date_iso_string(value: Optional[date] = None) -> str:
    """Return the local calendar date as ``YYYY-MM-DD`` (today when omitted)."""
    if value is None:
        value = date.today()
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def _as_decimal(value: Number) -> Decimal:
    if isinstance(value, bool):
        return Decimal(0)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(0)
    if not number.is_finite():
        return Decimal(0)
    return number


def _group_thousands(value: Decimal, decimal_places: int) -> str:
    quantum = Decimal(1).scaleb(-decimal_places)
    with localcontext() as ctx:
        # Room for every integer digit plus the requested fraction.
        ctx.prec = max(ctx.prec, value.adjusted() + decimal_places + 2)
        rounded = value.quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{abs(rounded):,.{decimal_places}f}"
    # pt-BR: "." groups thousands, "," separates decimals.
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-{text}" if rounded < 0 else text


def format_number(value: Number, decimal_places: int = 2) -> str:
    """Format a number with fixed decimals in the pt-BR locale; junk renders as zero."""
    return _group_thousands(_as_decimal(value), decimal_places)


def format_currency(value: Number) -> str:
    """Format a BRL amount, e.g. ``R$ 1.234,56`` or ``-R$ 10,00``."""
    text = _group_thousands(_as_decimal(value), 2)
    if text.startswith("-"):
        return f"-{CURRENCY_SYMBOL} {text[1:]}"
    return f"{CURRENCY_SYMBOL} {text}"


def format_duration(milliseconds: Number) -> str:
    """Format a duration as ``HH:mm:ss``; negative durations show as zero."""
    total_seconds = max(0, int(_as_decimal(milliseconds) // 1000))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_hours_minutes(milliseconds: Number) -> str:
    """Format a duration as ``HHhmm``; negative durations show as zero."""
    total_minutes = max(0, int(_as_decimal(milliseconds) // 60000))
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}h{minutes:02d}"
