"""Liveness and readiness probes.

Both probes are stateless and registered even when the app runs without a
database, so an orchestrator can tell a live process from a ready one.
"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = ["HealthResource", "ReadyResource"]


class HealthResource:
    """``GET /health``: the process is up."""

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Respond ``{"status": "ok"}``."""
        resp.media = {"status": "ok"}
        resp.status = HTTPStatus.OK


class ReadyResource:
    """``GET /ready``: report whether domain endpoints are being served.

    Parameters
    ----------
    domain_enabled
        Whether the subscription endpoints are registered. A health-only
        app is still ready to serve its probes.

    """

    def __init__(self, *, domain_enabled: bool = False) -> None:
        """Record whether the app serves subscription endpoints."""
        self._domain_enabled = domain_enabled

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Respond ``{"status": "ready", "subscriptions": bool}``."""
        resp.media = {"status": "ready", "subscriptions": self._domain_enabled}
        resp.status = HTTPStatus.OK
