"""Dispatch service: one matcher-and-export cycle over the subscription store.

Usage
-----
Run a cycle with the export pipeline as the export callable:

>>> from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
>>> from reportcourier.dispatch import DispatchService
>>> from reportcourier.export import ExportConfig, ReportExportService
>>>
>>> engine = create_async_engine("sqlite+aiosqlite:///courier.db")
>>> session_factory = async_sessionmaker(engine, expire_on_commit=False)
>>> exporter = ReportExportService(session_factory, ExportConfig.from_env())
>>> service = DispatchService(session_factory, exporter.export_subscription)
>>> report = await service.run_cycle()

"""

from __future__ import annotations

import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from reportcourier.common.time import as_utc, utcnow
from reportcourier.dispatch.cycle import run_dispatch_cycle
from reportcourier.dispatch.errors import DispatchCycleError
from reportcourier.dispatch.observability import DispatchEventLogger
from reportcourier.subscriptions.mapping import to_subscription
from reportcourier.subscriptions.storage import ReportSubscription

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from reportcourier.dispatch.models import DispatchReport, ExportFn
    from reportcourier.schedule.models import Subscription


class DispatchService:
    """Fetch active subscriptions and dispatch the due ones.

    Parameters
    ----------
    session_factory
        Async session factory for the subscription store.
    export_fn
        Async callable that exports and delivers one subscription by id.
    event_logger
        Structured event logger; a default instance is created when omitted.
    clock
        Source of the evaluation instant when ``run_cycle`` gets no ``as_of``.

    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        export_fn: ExportFn,
        *,
        event_logger: DispatchEventLogger | None = None,
        clock: typ.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the service with its store and exporter."""
        self._session_factory = session_factory
        self._export_fn = export_fn
        self._event_logger = event_logger or DispatchEventLogger()
        self._clock = clock

    async def fetch_active(self) -> list[Subscription]:
        """Return active subscriptions in store order.

        Raises
        ------
        DispatchCycleError
            If the store cannot be read.

        """
        try:
            async with self._session_factory() as session:
                rows = await session.scalars(
                    select(ReportSubscription)
                    .where(ReportSubscription.is_active.is_(True))
                    .order_by(ReportSubscription.created_at, ReportSubscription.id)
                )
                return [to_subscription(row) for row in rows.all()]
        except SQLAlchemyError as exc:
            raise DispatchCycleError.fetch_failed(str(exc)) from exc

    async def run_cycle(self, as_of: dt.datetime | None = None) -> DispatchReport:
        """Run one dispatch cycle.

        Parameters
        ----------
        as_of
            Evaluation instant; defaults to the current UTC time. Naive values
            are taken as UTC.

        Returns
        -------
        DispatchReport
            Per-subscription outcomes. Individual export failures are
            reported here, never raised.

        Raises
        ------
        DispatchCycleError
            If the active subscription set cannot be fetched.

        """
        now = as_utc(as_of) if as_of is not None else self._clock()
        try:
            subscriptions = await self.fetch_active()
        except DispatchCycleError as exc:
            self._event_logger.log_cycle_failed(error=exc)
            raise
        return await run_dispatch_cycle(
            subscriptions, now, self._export_fn, event_logger=self._event_logger
        )
