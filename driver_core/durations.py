"""Shift duration arithmetic, in whole milliseconds."""

from __future__ import annotations

from datetime import datetime, timedelta

from .models import Shift

ONE_MS = timedelta(milliseconds=1)
MS_PER_HOUR = 3_600_000


def _elapsed_ms(start: datetime, end: datetime) -> int:
    return (end - start) // ONE_MS


def pause_duration(shift: Shift) -> int:
    """Total paused time; incomplete or inverted pauses count as zero."""
    total = 0
    for pause in shift.pauses:
        if pause.start is None or pause.end is None:
            continue
        if pause.end > pause.start:
            total += _elapsed_ms(pause.start, pause.end)
    return total


def shift_duration(shift: Shift, with_pauses: bool = True) -> int:
    """Worked time of a shift, net of pauses unless ``with_pauses`` is False.

    Open or inverted shifts measure zero, and the result never goes negative.
    """
    if shift.start is None or shift.end is None:
        return 0
    if shift.end <= shift.start:
        return 0
    duration = _elapsed_ms(shift.start, shift.end)
    if with_pauses:
        duration -= pause_duration(shift)
    return max(duration, 0)
