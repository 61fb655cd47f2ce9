"""Schedule descriptors and dispatch bookkeeping for report subscriptions."""

from __future__ import annotations

import datetime as dt  # noqa: TC003
import enum

import msgspec

_HOURS_PER_DAY = 24
_MINUTES_PER_HOUR = 60


class Frequency(enum.StrEnum):
    """Recognised schedule frequencies."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    INTERVAL = "interval"


class TimeOfDay(msgspec.Struct, frozen=True):
    """Wall-clock time (24h, UTC) at which a subscription fires.

    Attributes
    ----------
    hour
        Hour of day, 0-23.
    minute
        Minute of hour, 0-59.

    """

    hour: int
    minute: int

    @property
    def minute_of_day(self) -> int:
        """Return minutes elapsed since midnight."""
        return self.hour * _MINUTES_PER_HOUR + self.minute

    @classmethod
    def parse(cls, raw: str | None) -> TimeOfDay | None:
        """Parse ``HH:MM`` (or ``HH:MM:SS``) into a ``TimeOfDay``.

        Returns ``None`` for missing or malformed input rather than raising,
        so a bad stored value leaves the subscription permanently not due.
        """
        if not raw:
            return None
        parts = raw.strip().split(":")
        if len(parts) < 2:  # noqa: PLR2004 - hour and minute are required
            return None
        try:
            hour = int(parts[0])
            minute = int(parts[1])
        except ValueError:
            return None
        if not (0 <= hour < _HOURS_PER_DAY and 0 <= minute < _MINUTES_PER_HOUR):
            return None
        return cls(hour=hour, minute=minute)

    def format(self) -> str:
        """Return the ``HH:MM`` representation."""
        return f"{self.hour:02d}:{self.minute:02d}"


class ScheduleSpec(msgspec.Struct, kw_only=True, frozen=True):
    """Declarative description of when a subscription should fire.

    Only the fields relevant to ``frequency`` are consulted; the rest are
    carried untouched. ``frequency`` keeps the raw stored value so that
    unrecognised kinds reach the matcher and are skipped there.

    Attributes
    ----------
    frequency
        One of the :class:`Frequency` values, or any other string.
    time_of_day
        Firing time for ``once``, ``daily``, ``weekly`` and ``monthly``.
    days_of_week
        Weekdays (Sunday=0) for ``weekly``.
    day_of_month
        Day of month (1-28) for ``monthly``.
    interval_hours
        Hours between sends for ``interval``.

    """

    frequency: str
    time_of_day: TimeOfDay | None = None
    days_of_week: frozenset[int] = frozenset()
    day_of_month: int | None = None
    interval_hours: int | None = None


class DispatchState(msgspec.Struct, kw_only=True, frozen=True):
    """Per-subscription dispatch bookkeeping read from the store.

    Attributes
    ----------
    last_fired_at
        When the export pipeline last completed a delivery, if ever.
    is_active
        Inactive subscriptions are never due.

    """

    last_fired_at: dt.datetime | None = None
    is_active: bool = True


class Subscription(msgspec.Struct, kw_only=True, frozen=True):
    """A report subscription as seen by the dispatch loop.

    Attributes
    ----------
    id
        Subscription identifier passed to the export pipeline.
    name
        Human-readable subscription name, used in log lines.
    schedule
        When the subscription fires.
    state
        Dispatch bookkeeping.
    company_id
        Owning company.
    dashboard_id
        Target report.

    """

    id: str
    name: str
    schedule: ScheduleSpec
    state: DispatchState = msgspec.field(default_factory=DispatchState)
    company_id: str | None = None
    dashboard_id: str | None = None
