"""Persistence models for companies, dashboards and report subscriptions."""

from __future__ import annotations

import datetime as dt
import enum
import typing as typ
import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from reportcourier.common.time import utcnow
from reportcourier.subscriptions.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine


def _new_id() -> str:
    return str(uuid.uuid4())


def _enum_column(enum_cls: type[enum.StrEnum]) -> Enum:
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """Base declarative class for Report Courier models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and store aware values in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError(self.__class__.__name__)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return aware UTC datetimes regardless of backend."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class EmbedType(enum.StrEnum):
    """How a dashboard is reached in Power BI."""

    WORKSPACE = "workspace_id"
    PUBLIC_LINK = "public_link"


class ExportFormat(enum.StrEnum):
    """Requested attachment format for a subscription."""

    PNG = "png"
    PDF = "pdf"


class DeliveryStatus(enum.StrEnum):
    """Lifecycle of one delivery attempt in ``subscription_logs``."""

    EXPORTING = "exporting"
    SENT_WITH_IMAGE = "sent_with_image"
    SENT_WITH_LINK = "sent_with_link"
    FAILED = "failed"


class Company(Base):
    """Client company that owns dashboards and subscriptions."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    primary_color: Mapped[str | None] = mapped_column(String(16), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)


class PowerBICredential(Base):
    """Service principal / master user credential for Power BI exports.

    ``client_secret`` and ``password`` hold AES-GCM ciphertext when the
    deployment configures an encryption key, and plain text otherwise.
    """

    __tablename__ = "powerbi_credentials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str | None] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), default=None
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_id: Mapped[str] = mapped_column(String(64), nullable=False)
    client_secret: Mapped[str] = mapped_column(Text(), nullable=False)
    username: Mapped[str | None] = mapped_column(String(320), default=None)
    password: Mapped[str | None] = mapped_column(Text(), default=None)


class Dashboard(Base):
    """Power BI report exposed to a company."""

    __tablename__ = "dashboards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    report_id: Mapped[str] = mapped_column(String(64), nullable=False)
    report_section: Mapped[str | None] = mapped_column(String(255), default=None)
    embed_type: Mapped[EmbedType] = mapped_column(
        _enum_column(EmbedType), default=EmbedType.WORKSPACE, nullable=False
    )
    public_link: Mapped[str | None] = mapped_column(Text(), default=None)
    credential_id: Mapped[str | None] = mapped_column(
        ForeignKey("powerbi_credentials.id", ondelete="SET NULL"), default=None
    )

    company: Mapped[Company] = relationship()
    credential: Mapped[PowerBICredential | None] = relationship()


class ReportSubscription(Base):
    """Recurring delivery of a dashboard to a list of recipients."""

    __tablename__ = "report_subscriptions"
    __table_args__ = (
        Index("ix_report_subscriptions_active", "is_active"),
        Index("ix_report_subscriptions_company", "company_id"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    company_id: Mapped[str] = mapped_column(
        ForeignKey("companies.id", ondelete="CASCADE"), nullable=False
    )
    dashboard_id: Mapped[str] = mapped_column(
        ForeignKey("dashboards.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str | None] = mapped_column(String(36), default=None)
    export_format: Mapped[ExportFormat] = mapped_column(
        _enum_column(ExportFormat), default=ExportFormat.PNG, nullable=False
    )
    # Stored as free text so unrecognised kinds survive and are skipped by
    # the matcher instead of failing the whole fetch.
    frequency: Mapped[str] = mapped_column(String(16), default="daily")
    schedule_time: Mapped[str] = mapped_column(String(8), default="08:00")
    schedule_days_of_week: Mapped[list[int] | None] = mapped_column(
        JSON, default=None
    )
    schedule_day_of_month: Mapped[int | None] = mapped_column(Integer, default=None)
    schedule_interval_hours: Mapped[int | None] = mapped_column(
        Integer, default=None
    )
    report_page: Mapped[str | None] = mapped_column(String(255), default=None)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_sent_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )

    dashboard: Mapped[Dashboard] = relationship()
    company: Mapped[Company] = relationship()
    recipients: Mapped[list[SubscriptionRecipient]] = relationship(
        back_populates="subscription",
        cascade="all, delete-orphan",
    )
    logs: Mapped[list[SubscriptionLog]] = relationship(
        back_populates="subscription",
        cascade="all, delete-orphan",
    )


class SubscriptionRecipient(Base):
    """Email recipient of a subscription."""

    __tablename__ = "subscription_recipients"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    subscription_id: Mapped[str] = mapped_column(
        ForeignKey("report_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), default=None)
    apply_rls: Mapped[bool] = mapped_column(Boolean, default=False)
    rls_user_id: Mapped[str | None] = mapped_column(String(36), default=None)
    created_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)

    subscription: Mapped[ReportSubscription] = relationship(
        back_populates="recipients"
    )


class SubscriptionLog(Base):
    """History entry for one export-and-deliver attempt."""

    __tablename__ = "subscription_logs"
    __table_args__ = (
        Index(
            "ix_subscription_logs_subscription_started",
            "subscription_id",
            "started_at",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    subscription_id: Mapped[str] = mapped_column(
        ForeignKey("report_subscriptions.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[DeliveryStatus] = mapped_column(
        _enum_column(DeliveryStatus), default=DeliveryStatus.EXPORTING, nullable=False
    )
    started_at: Mapped[dt.datetime] = mapped_column(UTCDateTime(), default=utcnow)
    completed_at: Mapped[dt.datetime | None] = mapped_column(
        UTCDateTime(), default=None
    )
    recipients_count: Mapped[int | None] = mapped_column(Integer, default=None)
    error_message: Mapped[str | None] = mapped_column(Text(), default=None)

    subscription: Mapped[ReportSubscription] = relationship(back_populates="logs")


async def init_storage(engine: AsyncEngine) -> None:
    """Create all Report Courier tables if absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
