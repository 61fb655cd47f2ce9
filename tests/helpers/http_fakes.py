"""In-process fakes for the Azure AD, Power BI and Mailjet HTTP APIs.

Endpoints match the ``export_config`` fixture in ``tests/conftest.py``.
"""

from __future__ import annotations

import dataclasses as dc
import json
import typing as typ

import httpx

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-report"
EXPORT_ID = "export-1"


@dc.dataclass(slots=True)
class FakeRemote:
    """Route requests to canned Azure AD, Power BI and Mailjet responses.

    Attributes
    ----------
    token_status
        Status returned by the token endpoint.
    export_start_status
        Status returned by ``ExportTo``.
    job_statuses
        Export job statuses returned by successive polls; the last repeats.
    job_error
        Error message attached to a ``Failed`` job.
    failing_emails
        Recipients for which Mailjet answers HTTP 500.

    """

    token_status: int = 200
    export_start_status: int = 202
    job_statuses: list[str] = dc.field(default_factory=lambda: ["Succeeded"])
    job_error: str | None = None
    failing_emails: set[str] = dc.field(default_factory=set)
    requests: list[httpx.Request] = dc.field(default_factory=list)
    sent_messages: list[dict[str, typ.Any]] = dc.field(default_factory=list)
    export_bodies: list[dict[str, typ.Any]] = dc.field(default_factory=list)
    _polls: int = 0

    def client(self) -> httpx.AsyncClient:
        """Return an httpx client whose transport is this fake."""
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))

    def paths(self) -> list[str]:
        """Return the request paths seen so far."""
        return [request.url.path for request in self.requests]

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Dispatch *request* by host and path."""
        self.requests.append(request)
        host = request.url.host
        path = request.url.path
        if host == "login.test":
            return self._token()
        if host == "mailjet.test":
            return self._mail(request)
        if path.endswith("/ExportTo"):
            self.export_bodies.append(json.loads(request.content))
            if self.export_start_status >= 400:  # noqa: PLR2004
                return httpx.Response(self.export_start_status, text="rejected")
            return httpx.Response(self.export_start_status, json={"id": EXPORT_ID})
        if path.endswith(f"/exports/{EXPORT_ID}"):
            return self._poll()
        if path.endswith(f"/exports/{EXPORT_ID}/file"):
            return httpx.Response(200, content=PNG_BYTES)
        return httpx.Response(404, text=f"unexpected request {path}")

    def _token(self) -> httpx.Response:
        if self.token_status >= 400:  # noqa: PLR2004
            return httpx.Response(self.token_status, json={"error": "invalid_grant"})
        return httpx.Response(200, json={"access_token": "aad-token"})

    def _poll(self) -> httpx.Response:
        index = min(self._polls, len(self.job_statuses) - 1)
        self._polls += 1
        status = self.job_statuses[index]
        body: dict[str, typ.Any] = {
            "id": EXPORT_ID,
            "status": status,
            "percentComplete": 100 if status == "Succeeded" else 50,
        }
        if self.job_error is not None:
            body["error"] = {"code": "ExportFailed", "message": self.job_error}
        return httpx.Response(200, json=body)

    def _mail(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        message = payload["Messages"][0]
        recipient = message["To"][0]["Email"]
        if recipient in self.failing_emails:
            return httpx.Response(500, text="mail relay unavailable")
        self.sent_messages.append(message)
        return httpx.Response(200, json={"Messages": [{"Status": "success"}]})


async def no_sleep(_seconds: float) -> None:
    """Skip poll delays."""
