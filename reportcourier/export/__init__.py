"""Power BI export and Mailjet delivery of report subscriptions."""

from __future__ import annotations

from .config import ExportConfig, MailjetConfig
from .crypto import decrypt_secret, encrypt_secret
from .email import EmailMessage, ReportEmailContext, render_report_email
from .errors import (
    DeliveryAbortedError,
    ExportConfigError,
    ExportError,
    MailjetError,
    PowerBIError,
)
from .mailjet import MailjetClient
from .powerbi import PowerBIClient, PowerBICredentials
from .service import ExportResult, ReportExportService

__all__ = [
    "DeliveryAbortedError",
    "EmailMessage",
    "ExportConfig",
    "ExportConfigError",
    "ExportError",
    "ExportResult",
    "MailjetClient",
    "MailjetConfig",
    "MailjetError",
    "PowerBIClient",
    "PowerBICredentials",
    "PowerBIError",
    "ReportEmailContext",
    "ReportExportService",
    "decrypt_secret",
    "encrypt_secret",
    "render_report_email",
]
