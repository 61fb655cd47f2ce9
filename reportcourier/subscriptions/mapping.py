"""Mapping helpers between subscription rows and domain structures."""

from __future__ import annotations

import typing as typ

from reportcourier.schedule.models import (
    DispatchState,
    ScheduleSpec,
    Subscription,
    TimeOfDay,
)
from reportcourier.subscriptions.models import (
    DeliveryLogView,
    RecipientView,
    SubscriptionView,
)

if typ.TYPE_CHECKING:
    from reportcourier.subscriptions.storage import (
        ReportSubscription,
        SubscriptionLog,
        SubscriptionRecipient,
    )


def _days_of_week(raw: object) -> frozenset[int]:
    if not isinstance(raw, list | tuple):
        return frozenset()
    return frozenset(day for day in raw if isinstance(day, int))


def to_schedule_spec(row: ReportSubscription) -> ScheduleSpec:
    """Build the matcher's view of a stored schedule.

    Malformed stored values (an unparsable time, non-integer weekdays) are
    dropped rather than rejected so the matcher can treat the subscription
    as not due.
    """
    return ScheduleSpec(
        frequency=row.frequency,
        time_of_day=TimeOfDay.parse(row.schedule_time),
        days_of_week=_days_of_week(row.schedule_days_of_week),
        day_of_month=row.schedule_day_of_month,
        interval_hours=row.schedule_interval_hours,
    )


def to_subscription(row: ReportSubscription) -> Subscription:
    """Convert a subscription row to the dispatch loop's aggregate.

    Parameters
    ----------
    row
        Subscription row loaded from the store.

    Returns
    -------
    Subscription
        Immutable snapshot consumed by the matcher and dispatch loop.

    """
    return Subscription(
        id=row.id,
        name=row.name,
        schedule=to_schedule_spec(row),
        state=DispatchState(last_fired_at=row.last_sent_at, is_active=row.is_active),
        company_id=row.company_id,
        dashboard_id=row.dashboard_id,
    )


def to_recipient_view(row: SubscriptionRecipient) -> RecipientView:
    """Convert a recipient row for API output."""
    return RecipientView(
        id=row.id, email=row.email, name=row.name, apply_rls=row.apply_rls
    )


def to_subscription_view(
    row: ReportSubscription,
    recipients: typ.Iterable[SubscriptionRecipient] = (),
) -> SubscriptionView:
    """Convert a subscription row and its recipients for API output."""
    return SubscriptionView(
        id=row.id,
        company_id=row.company_id,
        dashboard_id=row.dashboard_id,
        name=row.name,
        frequency=row.frequency,
        schedule_time=row.schedule_time,
        days_of_week=tuple(sorted(_days_of_week(row.schedule_days_of_week))),
        day_of_month=row.schedule_day_of_month,
        interval_hours=row.schedule_interval_hours,
        report_page=row.report_page,
        export_format=str(row.export_format),
        is_active=row.is_active,
        last_sent_at=row.last_sent_at,
        recipients=tuple(to_recipient_view(r) for r in recipients),
    )


def to_delivery_log_view(row: SubscriptionLog) -> DeliveryLogView:
    """Convert a delivery log row for API output."""
    return DeliveryLogView(
        id=row.id,
        status=str(row.status),
        started_at=row.started_at,
        completed_at=row.completed_at,
        recipients_count=row.recipients_count,
        error_message=row.error_message,
    )
