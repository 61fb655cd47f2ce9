"""Unit tests for subscription management.

Run with:
    pytest tests/unit/test_subscriptions_service.py
"""

from __future__ import annotations

import datetime as dt
import typing as typ

import msgspec
import pytest

from reportcourier.subscriptions import (
    InvalidSubscriptionError,
    RecipientInput,
    SubscriptionInput,
    SubscriptionLog,
    SubscriptionNotFoundError,
    SubscriptionService,
)
from reportcourier.subscriptions.service import validate_subscription_input
from reportcourier.subscriptions.storage import DeliveryStatus, ExportFormat
from tests.helpers.store import SeededDashboard, seed_dashboard

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


def _payload(
    seeded: SeededDashboard | None = None, **overrides: object
) -> SubscriptionInput:
    base = SubscriptionInput(
        company_id=seeded.company_id if seeded else "company-1",
        dashboard_id=seeded.dashboard_id if seeded else "dashboard-1",
        name="Morning sales",
        frequency="daily",
        schedule_time="08:00",
        recipients=(RecipientInput(email="ana@acme.test", name="Ana"),),
    )
    return msgspec.structs.replace(base, **overrides)


class TestValidation:
    """Tests for validate_subscription_input."""

    def test_accepts_minimal_daily(self) -> None:
        """A named daily subscription with one recipient is valid."""
        validate_subscription_input(_payload())

    @pytest.mark.parametrize(
        ("overrides", "field"),
        [
            ({"name": "   "}, "name"),
            ({"frequency": "hourly"}, "frequency"),
            ({"schedule_time": "8am"}, "schedule_time"),
            ({"frequency": "weekly"}, "days_of_week"),
            ({"frequency": "weekly", "days_of_week": (1, 7)}, "days_of_week"),
            ({"frequency": "monthly"}, "day_of_month"),
            ({"frequency": "monthly", "day_of_month": 0}, "day_of_month"),
            ({"frequency": "interval"}, "interval_hours"),
            ({"frequency": "interval", "interval_hours": 0}, "interval_hours"),
            ({"export_format": "xlsx"}, "export_format"),
            ({"recipients": ()}, "recipients"),
            ({"recipients": (RecipientInput(email="nobody"),)}, "recipients"),
        ],
    )
    def test_rejects_invalid_input(
        self, overrides: dict[str, object], field: str
    ) -> None:
        """Invalid input names the offending field."""
        with pytest.raises(InvalidSubscriptionError) as excinfo:
            validate_subscription_input(_payload(**overrides))
        assert excinfo.value.field == field, (
            f"expected field {field}, got {excinfo.value.field}"
        )

    def test_interval_does_not_need_time(self) -> None:
        """Interval schedules ignore the time of day."""
        validate_subscription_input(
            _payload(frequency="interval", interval_hours=4, schedule_time="")
        )


class TestSubscriptionService:
    """Tests for SubscriptionService against SQLite."""

    @pytest.fixture
    def service(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> SubscriptionService:
        """Return a service bound to the test store."""
        return SubscriptionService(session_factory)

    @pytest.mark.asyncio
    async def test_create_persists_schedule_and_recipients(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Created subscriptions keep their schedule and recipients."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(
            _payload(
                seeded,
                frequency="weekly",
                days_of_week=(5, 1, 1),
                export_format="pdf",
            )
        )

        stored = await service.get(created.id)
        assert stored.schedule_days_of_week == [1, 5], "days not normalised"
        assert stored.export_format is ExportFormat.PDF, "wrong export format"
        assert [r.email for r in stored.recipients] == ["ana@acme.test"], (
            "recipients not stored"
        )
        assert stored.last_sent_at is None, "new subscription already sent"

    @pytest.mark.asyncio
    async def test_create_clamps_day_of_month(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Days beyond the 28th are clamped so every month matches."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(
            _payload(seeded, frequency="monthly", day_of_month=31)
        )
        assert created.schedule_day_of_month == 28, "day of month not clamped"

    @pytest.mark.asyncio
    async def test_replace_swaps_recipients_and_keeps_history(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Editing replaces recipients but preserves last_sent_at."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(_payload(seeded))
        sent_at = dt.datetime(2024, 7, 1, 8, 1, tzinfo=dt.UTC)
        async with session_factory() as session, session.begin():
            row = await session.get(type(created), created.id)
            assert row is not None, "subscription missing"
            row.last_sent_at = sent_at

        replaced = await service.replace(
            created.id,
            _payload(
                seeded,
                name="Evening sales",
                schedule_time="18:30",
                recipients=(
                    RecipientInput(email="bo@acme.test"),
                    RecipientInput(email="cy@acme.test"),
                ),
            ),
        )

        stored = await service.get(replaced.id)
        assert stored.name == "Evening sales", "name not replaced"
        assert stored.schedule_time == "18:30", "time not replaced"
        assert sorted(r.email for r in stored.recipients) == [
            "bo@acme.test",
            "cy@acme.test",
        ], "recipients not replaced"
        assert stored.last_sent_at == sent_at, "last_sent_at lost on edit"

    @pytest.mark.asyncio
    async def test_set_active_toggles_only_flag(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Disabling leaves the schedule untouched."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(_payload(seeded))

        toggled = await service.set_active(created.id, is_active=False)

        assert toggled.is_active is False, "subscription still active"
        assert toggled.schedule_time == "08:00", "schedule changed"
        stored = await service.get(created.id)
        assert stored.is_active is False, "flag not persisted"

    @pytest.mark.asyncio
    async def test_list_for_company_newest_first(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Company listings show the newest subscription first."""
        seeded = await seed_dashboard(session_factory)
        first = await service.create(_payload(seeded, name="first"))
        second = await service.create(_payload(seeded, name="second"))
        async with session_factory() as session, session.begin():
            row = await session.get(type(first), first.id)
            assert row is not None, "subscription missing"
            row.created_at = dt.datetime(2020, 1, 1, tzinfo=dt.UTC)

        rows = await service.list_for_company(seeded.company_id)

        assert [r.id for r in rows] == [second.id, first.id], "wrong order"
        assert await service.list_for_company("other") == [], "leaked company"

    @pytest.mark.asyncio
    async def test_delete_removes_subscription(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Deleted subscriptions are gone, together with their logs."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(_payload(seeded))
        async with session_factory() as session, session.begin():
            session.add(SubscriptionLog(subscription_id=created.id))

        await service.delete(created.id)

        with pytest.raises(SubscriptionNotFoundError):
            await service.get(created.id)

    @pytest.mark.asyncio
    async def test_list_logs_newest_first_with_limit(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Delivery logs are returned newest first and capped by limit."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(_payload(seeded))
        base = dt.datetime(2024, 7, 1, 8, 0, tzinfo=dt.UTC)
        async with session_factory() as session, session.begin():
            for day in range(3):
                session.add(
                    SubscriptionLog(
                        subscription_id=created.id,
                        status=DeliveryStatus.SENT_WITH_LINK,
                        started_at=base + dt.timedelta(days=day),
                    )
                )

        logs = await service.list_logs(created.id, limit=2)

        assert [log.started_at.day for log in logs] == [3, 2], "wrong log order"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["get", "delete", "list_logs"])
    async def test_unknown_id_raises_not_found(
        self, service: SubscriptionService, operation: str
    ) -> None:
        """Operations on unknown ids raise SubscriptionNotFoundError."""
        with pytest.raises(SubscriptionNotFoundError, match="missing"):
            await getattr(service, operation)("missing")

    @pytest.mark.asyncio
    async def test_invalid_replace_does_not_touch_store(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        service: SubscriptionService,
    ) -> None:
        """Validation runs before the store is read."""
        seeded = await seed_dashboard(session_factory)
        created = await service.create(_payload(seeded))

        with pytest.raises(InvalidSubscriptionError):
            await service.replace(created.id, _payload(seeded, recipients=()))

        stored = await service.get(created.id)
        assert len(stored.recipients) == 1, "recipients changed"
