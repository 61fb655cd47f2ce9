"""Configuration for the export-and-deliver pipeline.

Usage
-----
Load configuration from the environment:

>>> import os
>>> os.environ["COURIER_MAILJET_API_KEY"] = "key"
>>> os.environ["COURIER_MAILJET_SECRET_KEY"] = "secret"
>>> config = ExportConfig.from_env()
>>> config.poll_max_attempts
60

"""

from __future__ import annotations

import dataclasses as dc
import os

from reportcourier.export.errors import ExportConfigError

_DEFAULT_MAILJET_ENDPOINT = "https://api.mailjet.com/v3.1/send"
_DEFAULT_POWERBI_API = "https://api.powerbi.com/v1.0/myorg"
_DEFAULT_AUTHORITY = "https://login.microsoftonline.com"
_DEFAULT_APP_BASE_URL = "http://localhost:8080"
_DEFAULT_SENDER_EMAIL = "reports@example.com"
_DEFAULT_SENDER_NAME = "Report Courier"
_DEFAULT_TIMEOUT_S = 60.0
_DEFAULT_POLL_INTERVAL_S = 5.0
_DEFAULT_POLL_MAX_ATTEMPTS = 60


@dc.dataclass(frozen=True, slots=True)
class MailjetConfig:
    """Credentials and endpoint for the Mailjet v3.1 send API.

    Attributes
    ----------
    api_key
        Mailjet public API key.
    secret_key
        Mailjet private API key.
    endpoint
        Send endpoint URL.

    """

    api_key: str
    secret_key: str
    endpoint: str = _DEFAULT_MAILJET_ENDPOINT

    @classmethod
    def from_env(cls) -> MailjetConfig:
        """Build configuration from ``COURIER_MAILJET_*`` variables.

        Raises
        ------
        ExportConfigError
            If the API key or secret key is missing or blank.

        """
        api_key = os.environ.get("COURIER_MAILJET_API_KEY", "").strip()
        if not api_key:
            raise ExportConfigError.missing("COURIER_MAILJET_API_KEY")
        secret_key = os.environ.get("COURIER_MAILJET_SECRET_KEY", "").strip()
        if not secret_key:
            raise ExportConfigError.missing("COURIER_MAILJET_SECRET_KEY")
        endpoint = os.environ.get("COURIER_MAILJET_ENDPOINT", _DEFAULT_MAILJET_ENDPOINT)
        return cls(api_key=api_key, secret_key=secret_key, endpoint=endpoint)


@dc.dataclass(frozen=True, slots=True)
class ExportConfig:
    """Settings for rendering Power BI reports and emailing them.

    Attributes
    ----------
    mailjet
        Mailjet credentials.
    app_base_url
        Base URL of the dashboard application, used for the email link.
    sender_email
        ``From`` address of delivery emails.
    sender_name
        ``From`` display name, also the fallback company name.
    encryption_key
        Key for decrypting stored Power BI secrets. ``None`` means the
        secrets are stored in plain text.
    powerbi_api_url
        Power BI REST API base URL.
    authority_url
        Azure AD authority base URL.
    timeout_s
        Per-request HTTP timeout.
    poll_interval_s
        Delay between export status polls.
    poll_max_attempts
        Number of status polls before the export is abandoned.

    """

    mailjet: MailjetConfig
    app_base_url: str = _DEFAULT_APP_BASE_URL
    sender_email: str = _DEFAULT_SENDER_EMAIL
    sender_name: str = _DEFAULT_SENDER_NAME
    encryption_key: str | None = None
    powerbi_api_url: str = _DEFAULT_POWERBI_API
    authority_url: str = _DEFAULT_AUTHORITY
    timeout_s: float = _DEFAULT_TIMEOUT_S
    poll_interval_s: float = _DEFAULT_POLL_INTERVAL_S
    poll_max_attempts: int = _DEFAULT_POLL_MAX_ATTEMPTS

    @staticmethod
    def _parse_positive_int(env_var: str, default: int) -> int:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError as exc:
            raise ExportConfigError.not_positive(env_var, raw) from exc
        if value < 1:
            raise ExportConfigError.not_positive(env_var, raw)
        return value

    @staticmethod
    def _parse_positive_float(env_var: str, default: float) -> float:
        raw = os.environ.get(env_var, "")
        if not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError as exc:
            raise ExportConfigError.not_positive(env_var, raw) from exc
        if value <= 0:
            raise ExportConfigError.not_positive(env_var, raw)
        return value

    @classmethod
    def from_env(cls) -> ExportConfig:
        """Create configuration from environment variables.

        Reads the following environment variables:

        - ``COURIER_MAILJET_API_KEY`` / ``COURIER_MAILJET_SECRET_KEY``:
          required Mailjet credentials.
        - ``COURIER_APP_BASE_URL``: dashboard application URL.
        - ``COURIER_SENDER_EMAIL`` / ``COURIER_SENDER_NAME``: email sender.
        - ``COURIER_ENCRYPTION_KEY``: optional credential decryption key.
        - ``COURIER_POWERBI_API_URL`` / ``COURIER_AUTHORITY_URL``: API
          endpoint overrides.
        - ``COURIER_HTTP_TIMEOUT_S``: positive float.
        - ``COURIER_EXPORT_POLL_INTERVAL_S``: positive float.
        - ``COURIER_EXPORT_POLL_MAX_ATTEMPTS``: positive integer.

        Returns
        -------
        ExportConfig
            Configuration with values from the environment or defaults.

        Raises
        ------
        ExportConfigError
            If a required variable is missing or a numeric value is invalid.

        """
        encryption_key = os.environ.get("COURIER_ENCRYPTION_KEY", "").strip() or None
        return cls(
            mailjet=MailjetConfig.from_env(),
            app_base_url=os.environ.get(
                "COURIER_APP_BASE_URL", _DEFAULT_APP_BASE_URL
            ).rstrip("/"),
            sender_email=os.environ.get("COURIER_SENDER_EMAIL", _DEFAULT_SENDER_EMAIL),
            sender_name=os.environ.get("COURIER_SENDER_NAME", _DEFAULT_SENDER_NAME),
            encryption_key=encryption_key,
            powerbi_api_url=os.environ.get(
                "COURIER_POWERBI_API_URL", _DEFAULT_POWERBI_API
            ).rstrip("/"),
            authority_url=os.environ.get(
                "COURIER_AUTHORITY_URL", _DEFAULT_AUTHORITY
            ).rstrip("/"),
            timeout_s=cls._parse_positive_float(
                "COURIER_HTTP_TIMEOUT_S", _DEFAULT_TIMEOUT_S
            ),
            poll_interval_s=cls._parse_positive_float(
                "COURIER_EXPORT_POLL_INTERVAL_S", _DEFAULT_POLL_INTERVAL_S
            ),
            poll_max_attempts=cls._parse_positive_int(
                "COURIER_EXPORT_POLL_MAX_ATTEMPTS", _DEFAULT_POLL_MAX_ATTEMPTS
            ),
        )
