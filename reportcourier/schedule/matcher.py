"""Decide whether a report subscription is due at a given instant.

The matcher is a pure predicate over explicit inputs: it knows nothing about
cron triggers, queues or the store, so any trigger mechanism can drive it.

Rules per frequency (all times UTC):

========  ==================  =======================  ===================
kind      time check          extra condition          repeat guard
========  ==================  =======================  ===================
once      ±5 minute window    never fired before       n/a
daily     ±5 minute window    none                     60 min since last
weekly    ±5 minute window    weekday in days_of_week  60 min since last
monthly   ±5 minute window    day == day_of_month      60 min since last
interval  none                elapsed >= interval      elapsed check
========  ==================  =======================  ===================

Unrecognised frequencies and malformed schedules are never due and never
raise.

Example:
>>> import datetime as dt
>>> from reportcourier.schedule import DispatchState, ScheduleSpec, TimeOfDay
>>> spec = ScheduleSpec(frequency="daily", time_of_day=TimeOfDay(8, 0))
>>> is_due(spec, DispatchState(), dt.datetime(2024, 7, 1, 8, 2, tzinfo=dt.UTC))
True

"""

from __future__ import annotations

import datetime as dt
import typing as typ

from reportcourier.common.time import as_utc
from reportcourier.schedule.models import Frequency

if typ.TYPE_CHECKING:
    from reportcourier.schedule.models import DispatchState, ScheduleSpec, TimeOfDay

MATCH_WINDOW_MINUTES = 5
DUPLICATE_GUARD = dt.timedelta(minutes=60)
DEFAULT_INTERVAL_HOURS = 6


def day_of_week(moment: dt.datetime) -> int:
    """Return the weekday of *moment* with Sunday as 0."""
    return (moment.weekday() + 1) % 7


def _within_window(time_of_day: TimeOfDay | None, now: dt.datetime) -> bool:
    if time_of_day is None:
        return False
    current = now.hour * 60 + now.minute
    return abs(current - time_of_day.minute_of_day) <= MATCH_WINDOW_MINUTES


def _interval_elapsed(
    interval_hours: int | None,
    last_fired_at: dt.datetime | None,
    now: dt.datetime,
) -> bool:
    # Null and zero fall back to the default, matching stored rows written
    # before the interval field existed.
    hours = interval_hours or DEFAULT_INTERVAL_HOURS
    if hours < 0:
        return False
    if last_fired_at is None:
        return True
    return now - last_fired_at >= dt.timedelta(hours=hours)


def _fired_recently(last_fired_at: dt.datetime | None, now: dt.datetime) -> bool:
    return last_fired_at is not None and now - last_fired_at < DUPLICATE_GUARD


def _matches_schedule(
    frequency: Frequency,
    spec: ScheduleSpec,
    last_fired_at: dt.datetime | None,
    now: dt.datetime,
) -> bool:
    in_window = _within_window(spec.time_of_day, now)
    match frequency:
        case Frequency.ONCE:
            return last_fired_at is None and in_window
        case Frequency.DAILY:
            return in_window
        case Frequency.WEEKLY:
            return in_window and day_of_week(now) in spec.days_of_week
        case Frequency.MONTHLY:
            return in_window and spec.day_of_month == now.day
        case Frequency.INTERVAL:
            return _interval_elapsed(spec.interval_hours, last_fired_at, now)


def is_due(spec: ScheduleSpec, state: DispatchState, now: dt.datetime) -> bool:
    """Return whether a subscription should fire at *now*.

    Parameters
    ----------
    spec
        The subscription's schedule.
    state
        Dispatch bookkeeping; inactive subscriptions are never due.
    now
        Evaluation instant. Naive values are taken as UTC.

    Returns
    -------
    bool
        ``True`` when the subscription should be dispatched this cycle.

    """
    if not state.is_active:
        return False
    try:
        frequency = Frequency(spec.frequency)
    except ValueError:
        return False

    current = as_utc(now)
    try:
        last_fired_at = (
            as_utc(state.last_fired_at) if state.last_fired_at is not None else None
        )
        due = _matches_schedule(frequency, spec, last_fired_at, current)
    except (TypeError, AttributeError):
        # Malformed field types (a string time, a non-integer interval, a
        # non-datetime last fire) are not due.
        return False

    if frequency is Frequency.INTERVAL:
        return due
    return due and not _fired_recently(last_fired_at, current)


__all__ = [
    "DEFAULT_INTERVAL_HOURS",
    "DUPLICATE_GUARD",
    "MATCH_WINDOW_MINUTES",
    "day_of_week",
    "is_due",
]
