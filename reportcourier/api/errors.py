"""API-level exceptions and the Falcon handlers that map errors to responses.

Usage
-----
Register the handlers on the Falcon app::

    from reportcourier.api.errors import register_error_handlers

    register_error_handlers(app)

"""

from __future__ import annotations

import typing as typ

import falcon

from reportcourier.dispatch.errors import DispatchCycleError
from reportcourier.logging import get_logger, log_error
from reportcourier.subscriptions.errors import (
    InvalidSubscriptionError,
    SubscriptionNotFoundError,
)

if typ.TYPE_CHECKING:
    from falcon.asgi import App, Request, Response

__all__ = [
    "InvalidInputError",
    "handle_dispatch_cycle_error",
    "handle_invalid_input",
    "handle_invalid_subscription",
    "handle_subscription_not_found",
    "register_error_handlers",
]

logger = get_logger(__name__)


class InvalidInputError(Exception):
    """Raised for malformed request bodies or query strings (HTTP 400).

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Optional name of the offending input field.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field is not None else reason)


def _bad_request(resp: Response, reason: str, field: str | None) -> None:
    resp.status = falcon.HTTP_400
    media: dict[str, str] = {"title": "Invalid input", "description": reason}
    if field is not None:
        media["field"] = field
    resp.media = media


async def handle_subscription_not_found(
    _req: Request,
    resp: Response,
    ex: SubscriptionNotFoundError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``SubscriptionNotFoundError`` to HTTP 404."""
    resp.status = falcon.HTTP_404
    resp.media = {"title": "Subscription not found", "description": str(ex)}


async def handle_invalid_subscription(
    _req: Request,
    resp: Response,
    ex: InvalidSubscriptionError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidSubscriptionError`` to HTTP 400 with the failing field."""
    _bad_request(resp, ex.reason, ex.field)


async def handle_invalid_input(
    _req: Request,
    resp: Response,
    ex: InvalidInputError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``InvalidInputError`` to HTTP 400."""
    _bad_request(resp, ex.reason, ex.field)


async def handle_dispatch_cycle_error(
    _req: Request,
    resp: Response,
    ex: DispatchCycleError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``DispatchCycleError`` to HTTP 500 ``{success: false, error}``.

    The process endpoint reports cycle-level failures in the same envelope
    as successful cycles so schedulers can parse either outcome.
    """
    log_error(logger, "Dispatch cycle failed: %s", ex.reason)
    resp.status = falcon.HTTP_500
    resp.media = {"success": False, "error": str(ex)}


def register_error_handlers(app: App) -> None:
    """Install every API error handler on *app*."""
    app.add_error_handler(SubscriptionNotFoundError, handle_subscription_not_found)
    app.add_error_handler(InvalidSubscriptionError, handle_invalid_subscription)
    app.add_error_handler(InvalidInputError, handle_invalid_input)
    app.add_error_handler(DispatchCycleError, handle_dispatch_cycle_error)
