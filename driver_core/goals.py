"""Goal bucket selection and progress figures."""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from .models import Filter, GoalTargets, Goals
from .validators import parse_date_input

__all__ = ["GoalProgress", "goal_bucket_for", "goal_progress", "goal_targets_for"]

BUCKET_BY_PERIOD = {
    "today": "daily",
    "yesterday": "daily",
    "this_week": "weekly",
    "last_7_days": "weekly",
    "this_month": "monthly",
    "last_30_days": "monthly",
}

HUNDRED = Decimal(100)


def _is_single_day(period_filter: Filter) -> bool:
    if not period_filter.custom_start or not period_filter.custom_end:
        return False
    start = parse_date_input(period_filter.custom_start, "start")
    end = parse_date_input(period_filter.custom_end, "end")
    return abs((end - start).days) <= 1


def goal_bucket_for(period_filter: Filter) -> Optional[str]:
    """Name of the goal bucket that applies to a period, or None."""
    if period_filter.period == "custom":
        return "daily" if _is_single_day(period_filter) else None
    return BUCKET_BY_PERIOD.get(period_filter.period)


def goal_targets_for(period_filter: Filter, goals: Goals) -> Optional[GoalTargets]:
    bucket = goal_bucket_for(period_filter)
    return goals.bucket(bucket) if bucket else None


@dataclass(frozen=True)
class GoalProgress:
    current: Decimal
    target: Decimal
    percent: Decimal
    display_percent: int
    bar_width: Decimal

    def to_dict(self) -> Dict[str, object]:
        return {
            "current": f"{self.current:.2f}",
            "target": f"{self.target:.2f}",
            "percent": f"{self.percent:.2f}",
            "display_percent": self.display_percent,
            "bar_width": f"{self.bar_width:.2f}",
        }


def goal_progress(current: Decimal, target: Optional[Decimal]) -> Optional[GoalProgress]:
    """Progress toward ``target``; None when there is no positive target to show.

    The bar is clamped to 0..100 (and empty whenever the current value is
    negative); the displayed percentage is only floored.
    """
    if target is None or target <= 0:
        return None
    percent = current / target * HUNDRED
    bar_width = Decimal(0) if current < 0 else min(HUNDRED, percent)
    return GoalProgress(
        current=current,
        target=target,
        percent=percent,
        display_percent=math.floor(percent),
        bar_width=bar_width,
    )
