"""Subscription management: the write side of the admin subscription form.

Creating and editing both take a full :class:`SubscriptionInput`; an edit
replaces every schedule field and the entire recipient list. Deleting a
subscription removes its recipients and delivery history with it.
"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from reportcourier.schedule.models import Frequency, TimeOfDay
from reportcourier.subscriptions.errors import (
    InvalidSubscriptionError,
    SubscriptionNotFoundError,
)
from reportcourier.subscriptions.storage import (
    ExportFormat,
    ReportSubscription,
    SubscriptionLog,
    SubscriptionRecipient,
)

if typ.TYPE_CHECKING:
    from reportcourier.subscriptions.models import SubscriptionInput

type SessionFactory = async_sessionmaker[AsyncSession]

MAX_DAY_OF_MONTH = 28
_MAX_WEEKDAY = 6
_DEFAULT_LOG_LIMIT = 50


def _validate_schedule(payload: SubscriptionInput) -> Frequency:
    try:
        frequency = Frequency(payload.frequency)
    except ValueError as exc:
        raise InvalidSubscriptionError.unknown_frequency(payload.frequency) from exc

    if frequency is not Frequency.INTERVAL and TimeOfDay.parse(
        payload.schedule_time
    ) is None:
        raise InvalidSubscriptionError.bad_time(payload.schedule_time)

    match frequency:
        case Frequency.WEEKLY:
            if not payload.days_of_week:
                msg = "weekly schedules need at least one day"
                raise InvalidSubscriptionError(msg, field="days_of_week")
            if any(not 0 <= day <= _MAX_WEEKDAY for day in payload.days_of_week):
                msg = "days must be between 0 (Sunday) and 6 (Saturday)"
                raise InvalidSubscriptionError(msg, field="days_of_week")
        case Frequency.MONTHLY:
            if payload.day_of_month is None or payload.day_of_month < 1:
                msg = "monthly schedules need a day of month of at least 1"
                raise InvalidSubscriptionError(msg, field="day_of_month")
        case Frequency.INTERVAL:
            if payload.interval_hours is None or payload.interval_hours < 1:
                msg = "interval schedules need a positive number of hours"
                raise InvalidSubscriptionError(msg, field="interval_hours")
        case Frequency.ONCE | Frequency.DAILY:
            pass
    return frequency


def validate_subscription_input(payload: SubscriptionInput) -> None:
    """Validate a create/edit payload.

    Raises
    ------
    InvalidSubscriptionError
        When any field is missing or out of range for the chosen frequency.

    """
    if not payload.name.strip():
        raise InvalidSubscriptionError("name must not be empty", field="name")
    _validate_schedule(payload)
    if payload.export_format not in {fmt.value for fmt in ExportFormat}:
        msg = f"unsupported export format {payload.export_format!r}"
        raise InvalidSubscriptionError(msg, field="export_format")
    if not payload.recipients:
        msg = "at least one recipient is required"
        raise InvalidSubscriptionError(msg, field="recipients")
    for recipient in payload.recipients:
        if "@" not in recipient.email:
            msg = f"invalid email address {recipient.email!r}"
            raise InvalidSubscriptionError(msg, field="recipients")


def _apply_schedule(row: ReportSubscription, payload: SubscriptionInput) -> None:
    """Copy every editable field from *payload* onto *row*."""
    row.company_id = payload.company_id
    row.dashboard_id = payload.dashboard_id
    row.name = payload.name.strip()
    row.frequency = payload.frequency
    row.schedule_time = payload.schedule_time.strip()[:5]
    row.schedule_days_of_week = sorted(set(payload.days_of_week)) or None
    row.schedule_day_of_month = (
        min(payload.day_of_month, MAX_DAY_OF_MONTH)
        if payload.day_of_month is not None
        else None
    )
    row.schedule_interval_hours = payload.interval_hours
    row.report_page = payload.report_page
    row.export_format = ExportFormat(payload.export_format)
    row.is_active = payload.is_active


def _build_recipients(payload: SubscriptionInput) -> list[SubscriptionRecipient]:
    return [
        SubscriptionRecipient(
            email=recipient.email.strip(),
            name=recipient.name,
            apply_rls=recipient.apply_rls,
            rls_user_id=recipient.rls_user_id,
        )
        for recipient in payload.recipients
    ]


class SubscriptionService:
    """Create, edit, toggle and delete report subscriptions.

    Parameters
    ----------
    session_factory
        Async session factory for the subscription store.

    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Configure the service with a session factory."""
        self._session_factory = session_factory

    async def create(self, payload: SubscriptionInput) -> ReportSubscription:
        """Validate and insert a subscription with its recipients."""
        validate_subscription_input(payload)
        row = ReportSubscription(created_by=payload.created_by)
        _apply_schedule(row, payload)
        row.recipients = _build_recipients(payload)
        async with self._session_factory() as session, session.begin():
            session.add(row)
        return row

    async def replace(
        self, subscription_id: str, payload: SubscriptionInput
    ) -> ReportSubscription:
        """Replace the schedule and recipient list of an existing subscription.

        ``last_sent_at`` and the delivery history are preserved.

        Raises
        ------
        SubscriptionNotFoundError
            If *subscription_id* does not exist.
        InvalidSubscriptionError
            If *payload* fails validation.

        """
        validate_subscription_input(payload)
        async with self._session_factory() as session, session.begin():
            row = await self._load(session, subscription_id, with_recipients=True)
            _apply_schedule(row, payload)
            row.recipients = _build_recipients(payload)
        return row

    async def set_active(
        self, subscription_id: str, *, is_active: bool
    ) -> ReportSubscription:
        """Enable or disable a subscription without touching its schedule."""
        async with self._session_factory() as session, session.begin():
            row = await self._load(session, subscription_id, with_recipients=True)
            row.is_active = is_active
        return row

    async def delete(self, subscription_id: str) -> None:
        """Delete a subscription together with its recipients and logs."""
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(
                select(ReportSubscription)
                .where(ReportSubscription.id == subscription_id)
                .options(
                    selectinload(ReportSubscription.recipients),
                    selectinload(ReportSubscription.logs),
                )
            )
            if row is None:
                raise SubscriptionNotFoundError(subscription_id)
            await session.delete(row)

    async def get(self, subscription_id: str) -> ReportSubscription:
        """Return a subscription with its recipients loaded."""
        async with self._session_factory() as session:
            return await self._load(session, subscription_id, with_recipients=True)

    async def list_for_company(self, company_id: str) -> list[ReportSubscription]:
        """Return a company's subscriptions, most recently created first."""
        async with self._session_factory() as session:
            rows = await session.scalars(
                select(ReportSubscription)
                .where(ReportSubscription.company_id == company_id)
                .options(selectinload(ReportSubscription.recipients))
                .order_by(ReportSubscription.created_at.desc())
            )
            return list(rows.all())

    async def list_logs(
        self, subscription_id: str, *, limit: int = _DEFAULT_LOG_LIMIT
    ) -> list[SubscriptionLog]:
        """Return the newest delivery log entries for a subscription."""
        async with self._session_factory() as session:
            await self._load(session, subscription_id)
            rows = await session.scalars(
                select(SubscriptionLog)
                .where(SubscriptionLog.subscription_id == subscription_id)
                .order_by(SubscriptionLog.started_at.desc())
                .limit(limit)
            )
            return list(rows.all())

    @staticmethod
    async def _load(
        session: AsyncSession,
        subscription_id: str,
        *,
        with_recipients: bool = False,
    ) -> ReportSubscription:
        stmt = select(ReportSubscription).where(
            ReportSubscription.id == subscription_id
        )
        if with_recipients:
            stmt = stmt.options(selectinload(ReportSubscription.recipients))
        row = await session.scalar(stmt)
        if row is None:
            raise SubscriptionNotFoundError(subscription_id)
        return row
