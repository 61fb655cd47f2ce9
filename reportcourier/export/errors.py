"""Custom exceptions for the export-and-deliver pipeline."""

from __future__ import annotations

_BODY_PREVIEW_LIMIT = 200


def _preview(body: str) -> str:
    if len(body) <= _BODY_PREVIEW_LIMIT:
        return body
    return f"{body[:_BODY_PREVIEW_LIMIT]}..."


class ExportError(Exception):
    """Base exception for export pipeline errors."""


class ExportConfigError(ExportError):
    """Raised when export configuration is missing or invalid."""

    @classmethod
    def missing(cls, env_var: str) -> ExportConfigError:
        """Create error for a required variable that is unset."""
        return cls(f"{env_var} environment variable is required")

    @classmethod
    def not_positive(cls, env_var: str, raw: str) -> ExportConfigError:
        """Create error for a numeric variable that is not positive."""
        return cls(f"{env_var} must be a positive number, got: {raw!r}")


class DeliveryAbortedError(ExportError):
    """Raised when a subscription cannot be delivered at all.

    The message is recorded verbatim in the delivery log and in the
    dispatch cycle's results.
    """

    @classmethod
    def subscription_not_found(cls) -> DeliveryAbortedError:
        """Create error for an unknown subscription id."""
        return cls("Subscription not found")

    @classmethod
    def no_recipients(cls) -> DeliveryAbortedError:
        """Create error for a subscription with an empty recipient list."""
        return cls("No recipients configured")

    @classmethod
    def dashboard_not_found(cls) -> DeliveryAbortedError:
        """Create error for a subscription whose dashboard is gone."""
        return cls("Dashboard not found")


class PowerBIError(ExportError):
    """Raised when rendering a report through Power BI fails.

    Attributes
    ----------
    status_code
        HTTP status code of the failing response, if any.

    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise the error with message and optional status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def credential_not_found(cls) -> PowerBIError:
        """Create error for a dashboard credential that no longer exists."""
        return cls("Credential not found")

    @classmethod
    def token_failed(cls, status_code: int) -> PowerBIError:
        """Create error for a rejected Azure AD token request."""
        return cls(
            f"Failed to get Azure AD token: {status_code}", status_code=status_code
        )

    @classmethod
    def export_rejected(cls, status_code: int, body: str) -> PowerBIError:
        """Create error for a rejected ExportTo request."""
        msg = f"Failed to initiate export: {status_code} - {_preview(body)}"
        return cls(msg, status_code=status_code)

    @classmethod
    def status_check_failed(cls, status_code: int) -> PowerBIError:
        """Create error for a failed export status poll."""
        return cls(
            f"Failed to check export status: {status_code}", status_code=status_code
        )

    @classmethod
    def export_failed(cls, detail: str | None) -> PowerBIError:
        """Create error for an export job that ended in ``Failed``."""
        return cls(f"Export failed: {detail or 'Unknown error'}")

    @classmethod
    def download_failed(cls, status_code: int) -> PowerBIError:
        """Create error for a failed export file download."""
        return cls(
            f"Failed to download export file: {status_code}", status_code=status_code
        )

    @classmethod
    def timed_out(cls, seconds: float) -> PowerBIError:
        """Create error for an export job that never completed."""
        return cls(f"Export timed out after {seconds:.0f} seconds")

    @classmethod
    def network_error(cls, detail: str) -> PowerBIError:
        """Create error for transport failures (DNS, TLS, timeouts)."""
        return cls(f"Power BI network error: {detail}")

    @classmethod
    def invalid_response(cls, detail: str) -> PowerBIError:
        """Create error for responses missing expected fields."""
        return cls(f"Power BI returned an unexpected response: {detail}")


class MailjetError(ExportError):
    """Raised when Mailjet rejects or cannot receive a message."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialise the error with message and optional status code."""
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def http_error(cls, status_code: int, body: str) -> MailjetError:
        """Create error for a non-success send response."""
        msg = f"Mailjet send failed: {status_code} - {_preview(body)}"
        return cls(msg, status_code=status_code)

    @classmethod
    def network_error(cls, detail: str) -> MailjetError:
        """Create error for transport failures."""
        return cls(f"Mailjet network error: {detail}")
