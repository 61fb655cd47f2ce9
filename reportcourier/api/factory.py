"""Build the API's services from a session factory and the environment.

Usage
-----
::

    from reportcourier.api.factory import build_dependencies

    deps = build_dependencies(session_factory)

"""

from __future__ import annotations

import typing as typ

from reportcourier.api.app import AppDependencies
from reportcourier.dispatch.observability import DispatchEventLogger
from reportcourier.dispatch.service import DispatchService
from reportcourier.export.config import ExportConfig
from reportcourier.export.service import ReportExportService
from reportcourier.subscriptions.service import SubscriptionService

if typ.TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

__all__ = ["build_dependencies"]


def build_dependencies(
    session_factory: async_sessionmaker[AsyncSession],
    *,
    export_config: ExportConfig | None = None,
) -> AppDependencies:
    """Assemble subscription, dispatch and export services.

    Parameters
    ----------
    session_factory
        Async session factory for the subscription store.
    export_config
        Export configuration; read from the environment when omitted.

    Returns
    -------
    AppDependencies
        Dependencies enabling every subscription endpoint.

    Raises
    ------
    ExportConfigError
        If the export configuration is read from an incomplete environment.

    """
    config = export_config or ExportConfig.from_env()
    export_service = ReportExportService(session_factory, config)
    dispatch_service = DispatchService(
        session_factory,
        export_service.export_subscription,
        event_logger=DispatchEventLogger(),
    )
    return AppDependencies(
        subscription_service=SubscriptionService(session_factory),
        dispatch_service=dispatch_service,
        export_service=export_service,
    )
