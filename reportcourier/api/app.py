"""Application factory for the Report Courier Falcon ASGI application.

Usage
-----
Create a health-only app (no database)::

    app = create_app()

Create the full app::

    from reportcourier.api.app import create_app
    from reportcourier.api.factory import build_dependencies

    app = create_app(build_dependencies(session_factory))

"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import falcon.asgi

from reportcourier.api.errors import register_error_handlers
from reportcourier.api.health.resources import HealthResource, ReadyResource

if typ.TYPE_CHECKING:
    from reportcourier.dispatch.service import DispatchService
    from reportcourier.export.service import ReportExportService
    from reportcourier.subscriptions.service import SubscriptionService

__all__ = ["AppDependencies", "create_app"]


@dc.dataclass(frozen=True, slots=True)
class AppDependencies:
    """Services backing the subscription endpoints.

    When all three are provided the app registers the subscription routes;
    otherwise only ``/health`` and ``/ready`` are served.

    Attributes
    ----------
    subscription_service
        Management service for the subscription store.
    dispatch_service
        Runs dispatch cycles for ``POST /subscriptions/process``.
    export_service
        Exports single subscriptions on demand.

    """

    subscription_service: SubscriptionService | None = None
    dispatch_service: DispatchService | None = None
    export_service: ReportExportService | None = None


def _has_domain_deps(deps: AppDependencies | None) -> bool:
    return (
        deps is not None
        and deps.subscription_service is not None
        and deps.dispatch_service is not None
        and deps.export_service is not None
    )


def _add_subscription_routes(app: falcon.asgi.App, deps: AppDependencies) -> None:
    from reportcourier.api.subscriptions.resources import (
        DeliveryLogResource,
        ExportResource,
        ProcessResource,
        SubscriptionCollectionResource,
        SubscriptionItemResource,
        SubscriptionResourceDependencies,
    )

    resource_deps = SubscriptionResourceDependencies(
        subscription_service=typ.cast("SubscriptionService", deps.subscription_service),
        dispatch_service=typ.cast("DispatchService", deps.dispatch_service),
        export_service=typ.cast("ReportExportService", deps.export_service),
    )
    app.add_route("/subscriptions", SubscriptionCollectionResource(resource_deps))
    app.add_route("/subscriptions/process", ProcessResource(resource_deps))
    app.add_route(
        "/subscriptions/{subscription_id}", SubscriptionItemResource(resource_deps)
    )
    app.add_route(
        "/subscriptions/{subscription_id}/export", ExportResource(resource_deps)
    )
    app.add_route(
        "/subscriptions/{subscription_id}/logs", DeliveryLogResource(resource_deps)
    )


def create_app(
    dependencies: AppDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional services. When incomplete or ``None``, only the health
        endpoints are registered.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    app = falcon.asgi.App()
    domain_enabled = _has_domain_deps(dependencies)

    app.add_route("/health", HealthResource())
    app.add_route("/ready", ReadyResource(domain_enabled=domain_enabled))

    if domain_enabled and dependencies is not None:
        _add_subscription_routes(app, dependencies)

    register_error_handlers(app)
    return app
