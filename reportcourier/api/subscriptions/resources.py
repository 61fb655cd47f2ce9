"""Subscription endpoints: dispatch trigger, manual export and management.

Routes
------
``POST /subscriptions/process``
    Run one dispatch cycle.
``POST /subscriptions/{subscription_id}/export``
    Export and deliver one subscription now.
``POST /subscriptions`` and ``GET /subscriptions?company_id=``
    Create a subscription; list a company's subscriptions.
``GET|PUT|PATCH|DELETE /subscriptions/{subscription_id}``
    Read, replace, toggle or delete one subscription.
``GET /subscriptions/{subscription_id}/logs``
    Delivery history, newest first.

"""

from __future__ import annotations

import dataclasses as dc
import datetime as dt
import typing as typ

import falcon
import msgspec

from reportcourier.api.errors import InvalidInputError
from reportcourier.subscriptions.mapping import (
    to_delivery_log_view,
    to_subscription_view,
)
from reportcourier.subscriptions.models import SubscriptionInput

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from reportcourier.dispatch.service import DispatchService
    from reportcourier.export.service import ReportExportService
    from reportcourier.subscriptions.service import SubscriptionService
    from reportcourier.subscriptions.storage import ReportSubscription

__all__ = [
    "DeliveryLogResource",
    "ExportResource",
    "ProcessResource",
    "SubscriptionCollectionResource",
    "SubscriptionItemResource",
    "SubscriptionResourceDependencies",
]

_DEFAULT_LOG_LIMIT = 50
_MAX_LOG_LIMIT = 500


class ActiveToggle(msgspec.Struct, kw_only=True, frozen=True):
    """Body of ``PATCH /subscriptions/{subscription_id}``."""

    is_active: bool


@dc.dataclass(frozen=True, slots=True)
class SubscriptionResourceDependencies:
    """Collaborators shared by the subscription resources.

    Attributes
    ----------
    subscription_service
        Management service for the subscription store.
    dispatch_service
        Runs dispatch cycles.
    export_service
        Exports and delivers single subscriptions.

    """

    subscription_service: SubscriptionService
    dispatch_service: DispatchService
    export_service: ReportExportService


async def _decode_body[T](req: Request, body_type: type[T]) -> T:
    raw = await req.stream.read()
    if not raw:
        msg = "request body is required"
        raise InvalidInputError(msg)
    try:
        return msgspec.json.decode(raw, type=body_type)
    except msgspec.ValidationError as exc:
        raise InvalidInputError(str(exc)) from exc
    except msgspec.DecodeError as exc:
        msg = "request body is not valid JSON"
        raise InvalidInputError(msg) from exc


def _parse_as_of(raw: str | None) -> dt.datetime | None:
    if raw is None:
        return None
    try:
        parsed = dt.datetime.fromisoformat(raw)
    except ValueError as exc:
        msg = f"expected an ISO 8601 timestamp, got {raw!r}"
        raise InvalidInputError(msg, field="as_of") from exc
    if parsed.tzinfo is None:
        msg = "timestamp must include a timezone offset"
        raise InvalidInputError(msg, field="as_of")
    return parsed


def _subscription_media(row: ReportSubscription) -> dict[str, typ.Any]:
    return msgspec.to_builtins(to_subscription_view(row, row.recipients))


class ProcessResource:
    """``POST /subscriptions/process``: run one dispatch cycle.

    The request body is ignored. An optional ``as_of`` query parameter
    (ISO 8601 with offset) overrides the evaluation instant.
    """

    def __init__(self, dependencies: SubscriptionResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._dispatch = dependencies.dispatch_service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Run the cycle and return ``{success, processed, results}``.

        Individual export failures still yield HTTP 200; a cycle that
        cannot run raises ``DispatchCycleError``, mapped to HTTP 500.
        """
        as_of = _parse_as_of(req.get_param("as_of"))
        report = await self._dispatch.run_cycle(as_of)
        resp.media = report.to_payload()
        resp.status = falcon.HTTP_200


class ExportResource:
    """``POST /subscriptions/{subscription_id}/export``: deliver now."""

    def __init__(self, dependencies: SubscriptionResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._export = dependencies.export_service

    async def on_post(
        self, _req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Export and deliver; 200 on success, 500 with the error otherwise."""
        result = await self._export.export_subscription(subscription_id)
        resp.media = result.to_payload()
        resp.status = falcon.HTTP_200 if result.success else falcon.HTTP_500


class SubscriptionCollectionResource:
    """``/subscriptions``: create and list."""

    def __init__(self, dependencies: SubscriptionResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.subscription_service

    async def on_post(self, req: Request, resp: Response) -> None:
        """Create a subscription from a :class:`SubscriptionInput` body."""
        payload = await _decode_body(req, SubscriptionInput)
        row = await self._service.create(payload)
        resp.media = _subscription_media(row)
        resp.status = falcon.HTTP_201

    async def on_get(self, req: Request, resp: Response) -> None:
        """List the subscriptions of ``company_id``."""
        company_id = req.get_param("company_id", required=True)
        rows = await self._service.list_for_company(company_id)
        resp.media = {"subscriptions": [_subscription_media(row) for row in rows]}
        resp.status = falcon.HTTP_200


class SubscriptionItemResource:
    """``/subscriptions/{subscription_id}``: read, replace, toggle, delete."""

    def __init__(self, dependencies: SubscriptionResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.subscription_service

    async def on_get(
        self, _req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Return one subscription with its recipients."""
        row = await self._service.get(subscription_id)
        resp.media = _subscription_media(row)
        resp.status = falcon.HTTP_200

    async def on_put(
        self, req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Replace the schedule and recipients of a subscription."""
        payload = await _decode_body(req, SubscriptionInput)
        row = await self._service.replace(subscription_id, payload)
        resp.media = _subscription_media(row)
        resp.status = falcon.HTTP_200

    async def on_patch(
        self, req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Enable or disable a subscription from ``{"is_active": bool}``."""
        toggle = await _decode_body(req, ActiveToggle)
        row = await self._service.set_active(
            subscription_id, is_active=toggle.is_active
        )
        resp.media = _subscription_media(row)
        resp.status = falcon.HTTP_200

    async def on_delete(
        self, _req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Delete a subscription, its recipients and its delivery history."""
        await self._service.delete(subscription_id)
        resp.status = falcon.HTTP_204


class DeliveryLogResource:
    """``GET /subscriptions/{subscription_id}/logs``."""

    def __init__(self, dependencies: SubscriptionResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._service = dependencies.subscription_service

    async def on_get(
        self, req: Request, resp: Response, *, subscription_id: str
    ) -> None:
        """Return up to ``limit`` log entries, newest first."""
        limit = req.get_param_as_int(
            "limit", min_value=1, max_value=_MAX_LOG_LIMIT, default=_DEFAULT_LOG_LIMIT
        )
        rows = await self._service.list_logs(subscription_id, limit=limit)
        resp.media = {
            "logs": [msgspec.to_builtins(to_delivery_log_view(row)) for row in rows]
        }
        resp.status = falcon.HTTP_200
