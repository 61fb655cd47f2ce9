"""Dramatiq actors for running dispatch cycles and manual exports.

An external scheduler (cron, a Kubernetes CronJob, a workflow runner) sends
``process_subscriptions_job`` every few minutes; the actor runs exactly one
dispatch cycle. ``export_subscription_job`` delivers a single subscription
on demand.

Usage
-----
Queue a dispatch cycle:

>>> process_subscriptions_job.send(database_url="postgresql+asyncpg://...")

Queue a one-off export:

>>> export_subscription_job.send(
...     database_url="postgresql+asyncpg://...",
...     subscription_id="550e8400-e29b-41d4-a716-446655440000",
... )

"""

from __future__ import annotations

import asyncio
import datetime as dt
import threading
import typing as typ

import dramatiq
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from reportcourier.dispatch._broker import ensure_broker_configured
from reportcourier.dispatch.service import DispatchService
from reportcourier.export.config import ExportConfig
from reportcourier.export.service import ReportExportService

type SessionFactory = async_sessionmaker[AsyncSession]

_ENGINE_CACHE: dict[str, AsyncEngine] = {}
_SESSION_FACTORY_CACHE: dict[str, SessionFactory] = {}
_CACHE_LOCK = threading.Lock()


def _ensure_session_factory_locked(database_url: str) -> SessionFactory:
    """Return the cached session factory for *database_url*.

    Precondition: the caller **must** hold ``_CACHE_LOCK``.
    """
    if database_url not in _SESSION_FACTORY_CACHE:
        if database_url not in _ENGINE_CACHE:
            _ENGINE_CACHE[database_url] = create_async_engine(database_url)
        _SESSION_FACTORY_CACHE[database_url] = async_sessionmaker(
            _ENGINE_CACHE[database_url], expire_on_commit=False
        )
    return _SESSION_FACTORY_CACHE[database_url]


def _get_or_create_session_factory(database_url: str) -> SessionFactory:
    """Get or create an async session factory for *database_url*."""
    with _CACHE_LOCK:
        return _ensure_session_factory_locked(database_url)


def _create_exporter(session_factory: SessionFactory) -> ReportExportService:
    """Build an export service for one actor invocation.

    Its HTTP clients are bound to the running event loop, so they are
    created inside each invocation and closed when it ends.
    """
    return ReportExportService(session_factory, ExportConfig.from_env())


def _parse_as_of_iso(as_of_iso: str | None) -> dt.datetime | None:
    """Parse an ISO timestamp, requiring timezone information.

    Raises
    ------
    ValueError
        If the timestamp is malformed or lacks timezone information.

    """
    if as_of_iso is None:
        return None
    parsed = dt.datetime.fromisoformat(as_of_iso)
    if parsed.tzinfo is None:
        msg = (
            f"as_of_iso must include timezone information, got naive datetime: "
            f"{as_of_iso!r}. Use ISO format with offset (e.g., "
            f"'2025-01-15T08:00:00Z' or '2025-01-15T08:00:00+00:00')."
        )
        raise ValueError(msg)
    return parsed


def _run_with_exporter[T](
    database_url: str,
    async_fn: typ.Callable[[ReportExportService, SessionFactory], typ.Awaitable[T]],
) -> T:
    """Run *async_fn* on a fresh event loop with a live export service."""
    ensure_broker_configured()
    session_factory = _get_or_create_session_factory(database_url)

    async def run() -> T:
        exporter = _create_exporter(session_factory)
        try:
            return await async_fn(exporter, session_factory)
        finally:
            await exporter.aclose()

    return asyncio.run(run())


@dramatiq.actor
def process_subscriptions_job(
    database_url: str,
    *,
    as_of_iso: str | None = None,
) -> dict[str, typ.Any]:
    """Run one dispatch cycle.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the subscription store.
    as_of_iso
        Optional evaluation instant with timezone (e.g.,
        ``'2025-01-15T08:00:00Z'``); defaults to now.

    Returns
    -------
    dict[str, typing.Any]
        The cycle payload ``{success, processed, results}``.

    Raises
    ------
    ValueError
        If *as_of_iso* lacks timezone information.
    DispatchCycleError
        If the active subscriptions cannot be fetched.

    """
    as_of = _parse_as_of_iso(as_of_iso)

    async def execute(
        exporter: ReportExportService, session_factory: SessionFactory
    ) -> dict[str, typ.Any]:
        service = DispatchService(session_factory, exporter.export_subscription)
        report = await service.run_cycle(as_of)
        return report.to_payload()

    return _run_with_exporter(database_url, execute)


@dramatiq.actor
def export_subscription_job(
    database_url: str,
    subscription_id: str,
) -> dict[str, object]:
    """Export and deliver one subscription immediately.

    Parameters
    ----------
    database_url
        SQLAlchemy URL for the subscription store.
    subscription_id
        Subscription to deliver.

    Returns
    -------
    dict[str, object]
        The export payload, ``success`` plus ``message`` or ``error``.

    """

    async def execute(
        exporter: ReportExportService, _session_factory: SessionFactory
    ) -> dict[str, object]:
        result = await exporter.export_subscription(subscription_id)
        return result.to_payload()

    return _run_with_exporter(database_url, execute)
