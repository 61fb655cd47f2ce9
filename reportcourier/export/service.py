"""Export-and-deliver pipeline for a single report subscription.

The pipeline loads the subscription, opens a delivery log entry, tries to
render the dashboard to PNG through Power BI, emails every recipient and
finally records the outcome. A failed PNG export is not fatal: recipients
then receive a link-only email.
"""

from __future__ import annotations

import typing as typ

import msgspec
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import selectinload

from reportcourier.common.time import utcnow
from reportcourier.export.crypto import decrypt_secret
from reportcourier.export.email import (
    DEFAULT_PRIMARY_COLOR,
    ReportEmailContext,
    render_report_email,
)
from reportcourier.export.errors import DeliveryAbortedError, ExportError, PowerBIError
from reportcourier.export.mailjet import MailjetClient
from reportcourier.export.powerbi import PowerBIClient, PowerBICredentials, report_url
from reportcourier.logging import (
    get_logger,
    log_exception,
    log_info,
    log_warning,
)
from reportcourier.subscriptions.storage import (
    Dashboard,
    DeliveryStatus,
    EmbedType,
    PowerBICredential,
    ReportSubscription,
    SubscriptionLog,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from reportcourier.export.config import ExportConfig

logger = get_logger(__name__)

IMAGE_SENT_MESSAGE = "Report image sent successfully"
LINK_SENT_MESSAGE = "Report link sent successfully (image export not available)"
NO_DELIVERY_ERROR = "No recipient could be reached"


class ExportResult(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Outcome of one export-and-deliver attempt."""

    success: bool
    message: str | None = None
    exported_as_image: bool = False
    error: str | None = None

    @classmethod
    def failed(cls, error: str) -> ExportResult:
        """Build a failure result carrying *error*."""
        return cls(success=False, error=error)

    def to_payload(self) -> dict[str, object]:
        """Return the HTTP response body for this result."""
        if not self.success:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "message": self.message,
            "exported_as_image": self.exported_as_image,
        }


class _Recipient(msgspec.Struct, frozen=True):
    email: str
    name: str | None


class _DashboardTarget(msgspec.Struct, kw_only=True, frozen=True):
    id: str
    name: str
    workspace_id: str
    report_id: str
    report_section: str | None
    embed_type: EmbedType
    public_link: str | None
    credential_id: str | None


class _DeliveryPlan(msgspec.Struct, kw_only=True, frozen=True):
    """Snapshot of everything needed after the loading transaction closes."""

    log_id: str
    dashboard: _DashboardTarget | None
    page_name: str | None
    company_name: str | None
    primary_color: str | None
    recipients: tuple[_Recipient, ...]


def _dashboard_target(row: Dashboard | None) -> _DashboardTarget | None:
    if row is None:
        return None
    return _DashboardTarget(
        id=row.id,
        name=row.name,
        workspace_id=row.workspace_id,
        report_id=row.report_id,
        report_section=row.report_section,
        embed_type=row.embed_type,
        public_link=row.public_link,
        credential_id=row.credential_id,
    )


class ReportExportService:
    """Render a subscription's dashboard and email it to its recipients.

    Parameters
    ----------
    session_factory
        Async session factory for the subscription store.
    config
        Export configuration.
    powerbi
        Power BI client; built from *config* when omitted.
    mailer
        Mailjet client; built from *config* when omitted.
    clock
        Source of the current time, injectable for tests.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        config: ExportConfig,
        *,
        powerbi: PowerBIClient | None = None,
        mailer: MailjetClient | None = None,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Wire the service to its store and clients."""
        self._session_factory = session_factory
        self._config = config
        self._powerbi = powerbi or PowerBIClient(config)
        self._mailer = mailer or MailjetClient(
            config.mailjet,
            sender_email=config.sender_email,
            sender_name=config.sender_name,
            timeout_s=config.timeout_s,
        )
        self._clock = clock

    async def aclose(self) -> None:
        """Close the HTTP clients owned by this service."""
        await self._powerbi.aclose()
        await self._mailer.aclose()

    async def export_subscription(self, subscription_id: str) -> ExportResult:
        """Export and deliver one subscription.

        Parameters
        ----------
        subscription_id
            Identifier of the subscription to deliver.

        Returns
        -------
        ExportResult
            ``success`` is true once at least one recipient was emailed.
            Failures, store errors included, carry the reason in ``error``;
            they are never raised.

        """
        log_info(logger, "Processing subscription %s", subscription_id)
        try:
            plan = await self._open_delivery(subscription_id)
        except DeliveryAbortedError as exc:
            log_warning(
                logger, "Subscription %s not delivered: %s", subscription_id, exc
            )
            return ExportResult.failed(str(exc))
        except SQLAlchemyError as exc:
            log_exception(
                logger,
                f"Could not open a delivery for subscription {subscription_id}",
                exc,
            )
            return ExportResult.failed(str(exc) or "Unknown error")

        try:
            return await self._deliver(subscription_id, plan)
        except ExportError as exc:
            log_warning(
                logger, "Subscription %s not delivered: %s", subscription_id, exc
            )
            error = str(exc)
        except Exception as exc:  # noqa: BLE001 - recorded as a failed delivery
            log_exception(
                logger,
                f"Unexpected error exporting subscription {subscription_id}",
                exc,
            )
            error = str(exc) or "Unknown error"
        try:
            await self._finish_log(plan.log_id, DeliveryStatus.FAILED, error=error)
        except SQLAlchemyError as exc:
            log_exception(
                logger,
                f"Could not record the failed delivery {plan.log_id}",
                exc,
            )
        return ExportResult.failed(error)

    async def _open_delivery(self, subscription_id: str) -> _DeliveryPlan:
        """Load the subscription and record an ``exporting`` log entry."""
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(
                select(ReportSubscription)
                .where(ReportSubscription.id == subscription_id)
                .options(
                    selectinload(ReportSubscription.dashboard),
                    selectinload(ReportSubscription.company),
                    selectinload(ReportSubscription.recipients),
                )
            )
            if row is None:
                raise DeliveryAbortedError.subscription_not_found()
            entry = SubscriptionLog(
                subscription_id=subscription_id,
                status=DeliveryStatus.EXPORTING,
                started_at=self._clock(),
            )
            session.add(entry)
            await session.flush()
            company = row.company
            return _DeliveryPlan(
                log_id=entry.id,
                dashboard=_dashboard_target(row.dashboard),
                page_name=row.report_page,
                company_name=company.name if company is not None else None,
                primary_color=company.primary_color if company is not None else None,
                recipients=tuple(_Recipient(r.email, r.name) for r in row.recipients),
            )

    async def _deliver(self, subscription_id: str, plan: _DeliveryPlan) -> ExportResult:
        if not plan.recipients:
            raise DeliveryAbortedError.no_recipients()
        dashboard = plan.dashboard
        if dashboard is None:
            raise DeliveryAbortedError.dashboard_not_found()

        image = await self._try_export_image(
            dashboard, plan.page_name or dashboard.report_section
        )
        context = ReportEmailContext(
            company_name=plan.company_name or self._config.sender_name,
            dashboard_name=dashboard.name,
            dashboard_link=f"{self._config.app_base_url}/dashboard/{dashboard.id}",
            powerbi_link=self._powerbi_link(dashboard),
            primary_color=plan.primary_color or DEFAULT_PRIMARY_COLOR,
        )

        log_info(
            logger, "Sending report email to %d recipient(s)", len(plan.recipients)
        )
        delivered = 0
        for recipient in plan.recipients:
            message = render_report_email(
                context,
                recipient_email=recipient.email,
                recipient_name=recipient.name,
                image_png=image,
            )
            try:
                await self._mailer.send(message)
            except ExportError as exc:
                log_warning(
                    logger, "Failed to send email to %s: %s", recipient.email, exc
                )
                continue
            delivered += 1
            log_info(logger, "Email sent to %s", recipient.email)

        if delivered == 0:
            await self._finish_log(
                plan.log_id,
                DeliveryStatus.FAILED,
                recipients_count=0,
                error=NO_DELIVERY_ERROR,
                subscription_id=subscription_id,
            )
            return ExportResult.failed(NO_DELIVERY_ERROR)

        exported_as_image = image is not None
        status = (
            DeliveryStatus.SENT_WITH_IMAGE
            if exported_as_image
            else DeliveryStatus.SENT_WITH_LINK
        )
        await self._finish_log(
            plan.log_id,
            status,
            recipients_count=delivered,
            subscription_id=subscription_id,
        )
        message = IMAGE_SENT_MESSAGE if exported_as_image else LINK_SENT_MESSAGE
        log_info(logger, "%s (subscription %s)", message, subscription_id)
        return ExportResult(
            success=True, message=message, exported_as_image=exported_as_image
        )

    async def _try_export_image(
        self, dashboard: _DashboardTarget, page_name: str | None
    ) -> bytes | None:
        if (
            dashboard.credential_id is None
            or dashboard.embed_type is EmbedType.PUBLIC_LINK
        ):
            return None
        try:
            credentials = await self._load_credentials(dashboard.credential_id)
            token = await self._powerbi.get_access_token(credentials)
            return await self._powerbi.export_report_png(
                token, dashboard.workspace_id, dashboard.report_id, page_name
            )
        except PowerBIError as exc:
            log_warning(logger, "PNG export failed, falling back to link: %s", exc)
            return None

    async def _load_credentials(self, credential_id: str) -> PowerBICredentials:
        async with self._session_factory() as session:
            row = await session.get(PowerBICredential, credential_id)
        if row is None:
            raise PowerBIError.credential_not_found()
        key = self._config.encryption_key
        client_secret = row.client_secret
        password = row.password or ""
        if key is not None:
            client_secret = decrypt_secret(client_secret, key)
            password = decrypt_secret(password, key)
        return PowerBICredentials(
            tenant_id=row.tenant_id,
            client_id=row.client_id,
            client_secret=client_secret,
            username=row.username or "",
            password=password,
        )

    @staticmethod
    def _powerbi_link(dashboard: _DashboardTarget) -> str:
        if dashboard.embed_type is EmbedType.PUBLIC_LINK and dashboard.public_link:
            return dashboard.public_link
        return report_url(dashboard.workspace_id, dashboard.report_id)

    async def _finish_log(
        self,
        log_id: str,
        status: DeliveryStatus,
        *,
        recipients_count: int | None = None,
        error: str | None = None,
        subscription_id: str | None = None,
    ) -> None:
        """Close the delivery log entry; stamp ``last_sent_at`` when given an id."""
        now = self._clock()
        async with self._session_factory() as session, session.begin():
            entry = await session.get(SubscriptionLog, log_id)
            if entry is not None:
                entry.status = status
                entry.completed_at = now
                entry.recipients_count = recipients_count
                entry.error_message = error
            if subscription_id is not None:
                row = await session.get(ReportSubscription, subscription_id)
                if row is not None:
                    row.last_sent_at = now
