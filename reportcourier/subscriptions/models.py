"""Input and view structures for subscription management."""

from __future__ import annotations

import datetime as dt  # noqa: TC003

import msgspec


class RecipientInput(msgspec.Struct, kw_only=True, frozen=True):
    """A recipient as submitted through the subscription form.

    Attributes
    ----------
    email
        Delivery address.
    name
        Optional display name used in the greeting.
    apply_rls
        Whether row-level security applies when exporting for this recipient.
    rls_user_id
        Platform user whose RLS identity is applied.

    """

    email: str
    name: str | None = None
    apply_rls: bool = False
    rls_user_id: str | None = None


class SubscriptionInput(msgspec.Struct, kw_only=True, frozen=True):
    """Full subscription definition submitted on create or edit.

    Editing replaces every schedule field and the whole recipient list.

    Attributes
    ----------
    company_id
        Owning company.
    dashboard_id
        Dashboard to export.
    name
        Human-readable subscription name.
    frequency
        ``once``, ``daily``, ``weekly``, ``monthly`` or ``interval``.
    schedule_time
        ``HH:MM`` in UTC.
    recipients
        At least one recipient.
    days_of_week
        Weekdays (Sunday=0) for weekly schedules.
    day_of_month
        Day of month for monthly schedules; values above 28 are clamped.
    interval_hours
        Hours between sends for interval schedules.
    report_page
        Optional Power BI page to export instead of the dashboard default.
    export_format
        ``png`` or ``pdf``.
    is_active
        Whether the subscription is enabled.
    created_by
        Platform user that created the subscription.

    """

    company_id: str
    dashboard_id: str
    name: str
    frequency: str
    schedule_time: str
    recipients: tuple[RecipientInput, ...]
    days_of_week: tuple[int, ...] = ()
    day_of_month: int | None = None
    interval_hours: int | None = None
    report_page: str | None = None
    export_format: str = "png"
    is_active: bool = True
    created_by: str | None = None


class RecipientView(msgspec.Struct, kw_only=True, frozen=True):
    """Recipient as returned by the management API."""

    id: str
    email: str
    name: str | None = None
    apply_rls: bool = False


class SubscriptionView(msgspec.Struct, kw_only=True, frozen=True):
    """Subscription as returned by the management API."""

    id: str
    company_id: str
    dashboard_id: str
    name: str
    frequency: str
    schedule_time: str
    days_of_week: tuple[int, ...]
    day_of_month: int | None
    interval_hours: int | None
    report_page: str | None
    export_format: str
    is_active: bool
    last_sent_at: dt.datetime | None
    recipients: tuple[RecipientView, ...] = ()


class DeliveryLogView(msgspec.Struct, kw_only=True, frozen=True):
    """Delivery history entry as returned by the management API."""

    id: str
    status: str
    started_at: dt.datetime
    completed_at: dt.datetime | None = None
    recipients_count: int | None = None
    error_message: str | None = None
