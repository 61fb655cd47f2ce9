"""Schedule descriptors and the due-subscription matcher."""

from __future__ import annotations

from .matcher import (
    DEFAULT_INTERVAL_HOURS,
    DUPLICATE_GUARD,
    MATCH_WINDOW_MINUTES,
    day_of_week,
    is_due,
)
from .models import DispatchState, Frequency, ScheduleSpec, Subscription, TimeOfDay

__all__ = [
    "DEFAULT_INTERVAL_HOURS",
    "DUPLICATE_GUARD",
    "MATCH_WINDOW_MINUTES",
    "DispatchState",
    "Frequency",
    "ScheduleSpec",
    "Subscription",
    "TimeOfDay",
    "day_of_week",
    "is_due",
]
