"""Power BI client: Azure AD token acquisition and PNG report export."""

from __future__ import annotations

import asyncio
import json
import typing as typ

import httpx
import msgspec

from reportcourier.export.errors import PowerBIError
from reportcourier.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    from reportcourier.export.config import ExportConfig

logger = get_logger(__name__)

_HTTP_ERROR_STATUS_THRESHOLD = 400
_POWERBI_SCOPE = "https://analysis.windows.net/powerbi/api/.default"

type SleepFn = typ.Callable[[float], typ.Awaitable[None]]


class PowerBICredentials(msgspec.Struct, kw_only=True, frozen=True):
    """Decrypted master-user credentials for the password grant."""

    tenant_id: str
    client_id: str
    client_secret: str
    username: str
    password: str


class ExportJobStatus(msgspec.Struct, kw_only=True, rename="camel"):
    """Subset of the Power BI export job resource that the poll reads."""

    id: str = ""
    status: str = ""
    percent_complete: int | None = None
    error: dict[str, object] | None = None

    @property
    def error_message(self) -> str | None:
        """Return the job's error message, if Power BI reported one."""
        if not self.error:
            return None
        message = self.error.get("message")
        return message if isinstance(message, str) else None


class PowerBIClient:
    """Render Power BI reports to PNG through the ExportTo API.

    Parameters
    ----------
    config
        Export configuration supplying endpoints and poll bounds.
    http_client
        Optional httpx.AsyncClient for testing. If not provided, the
        instance creates and owns its own client.
    sleep
        Awaitable used between status polls; tests pass a no-op.

    """

    def __init__(
        self,
        config: ExportConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        """Initialise the client with configuration."""
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=config.timeout_s)
        self._sleep = sleep

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    async def get_access_token(self, credentials: PowerBICredentials) -> str:
        """Obtain an Azure AD access token via the resource-owner password grant.

        Raises
        ------
        PowerBIError
            If the token endpoint rejects the request or omits the token.

        """
        url = f"{self._config.authority_url}/{credentials.tenant_id}/oauth2/v2.0/token"
        form = {
            "grant_type": "password",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "scope": _POWERBI_SCOPE,
            "username": credentials.username,
            "password": credentials.password,
        }
        response = await self._request("POST", url, data=form)
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise PowerBIError.token_failed(response.status_code)
        token = self._json(response).get("access_token")
        if not isinstance(token, str) or not token:
            raise PowerBIError.invalid_response("access_token missing")
        return token

    async def export_report_png(
        self,
        access_token: str,
        workspace_id: str,
        report_id: str,
        page_name: str | None = None,
    ) -> bytes:
        """Export a report (or one page of it) to PNG and return the bytes.

        The export job is polled every ``poll_interval_s`` seconds for at
        most ``poll_max_attempts`` attempts.

        Raises
        ------
        PowerBIError
            If the export cannot be started, fails, or does not complete
            within the poll bound.

        """
        headers = {"Authorization": f"Bearer {access_token}"}
        base_url = (
            f"{self._config.powerbi_api_url}/groups/{workspace_id}/reports/{report_id}"
        )
        log_info(
            logger,
            "Starting PNG export for report %s in workspace %s",
            report_id,
            workspace_id,
        )

        body: dict[str, object] = {"format": "PNG"}
        if page_name:
            body["powerBIReportConfiguration"] = {"pages": [{"pageName": page_name}]}
        response = await self._request(
            "POST", f"{base_url}/ExportTo", headers=headers, json=body
        )
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise PowerBIError.export_rejected(response.status_code, response.text)
        export_id = self._json(response).get("id")
        if not isinstance(export_id, str) or not export_id:
            raise PowerBIError.invalid_response("export id missing")

        status_url = f"{base_url}/exports/{export_id}"
        await self._wait_for_export(status_url, headers)

        file_response = await self._request(
            "GET", f"{status_url}/file", headers=headers
        )
        if file_response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise PowerBIError.download_failed(file_response.status_code)
        log_info(
            logger, "Downloaded PNG export, size %d bytes", len(file_response.content)
        )
        return file_response.content

    async def _wait_for_export(self, status_url: str, headers: dict[str, str]) -> None:
        attempts = self._config.poll_max_attempts
        for attempt in range(1, attempts + 1):
            await self._sleep(self._config.poll_interval_s)
            response = await self._request("GET", status_url, headers=headers)
            if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
                raise PowerBIError.status_check_failed(response.status_code)
            try:
                job = msgspec.json.decode(response.content, type=ExportJobStatus)
            except msgspec.DecodeError as exc:
                raise PowerBIError.invalid_response(str(exc)) from exc
            log_info(
                logger,
                "Export status %s (attempt %d, %s%% complete)",
                job.status,
                attempt,
                job.percent_complete,
            )
            if job.status == "Succeeded":
                return
            if job.status == "Failed":
                raise PowerBIError.export_failed(job.error_message)
        raise PowerBIError.timed_out(attempts * self._config.poll_interval_s)

    async def _request(
        self,
        method: str,
        url: str,
        **kwargs: typ.Any,  # noqa: ANN401
    ) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise PowerBIError.network_error(str(exc) or type(exc).__name__) from exc

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, object]:
        try:
            data = response.json()
        except json.JSONDecodeError as exc:
            raise PowerBIError.invalid_response("body is not JSON") from exc
        if not isinstance(data, dict):
            raise PowerBIError.invalid_response("body is not an object")
        return typ.cast("dict[str, object]", data)


def report_url(workspace_id: str, report_id: str) -> str:
    """Return the Power BI service URL for a report."""
    return f"https://app.powerbi.com/groups/{workspace_id}/reports/{report_id}"
