"""Emit structured observability events for dispatch cycles.

This module defines event identifiers and a logger wrapper used by the
dispatch loop and :class:`~reportcourier.dispatch.service.DispatchService`
to emit start, per-subscription and completion telemetry.

Usage
-----
Create a logger and pass it to the dispatch loop:

>>> event_logger = DispatchEventLogger()
>>> event_logger.log_cycle_started(now=now, evaluated=12)

"""

from __future__ import annotations

import enum
import typing as typ

from reportcourier.logging import get_logger, log_event

if typ.TYPE_CHECKING:
    import datetime as dt

    from reportcourier.dispatch.models import DispatchReport
    from reportcourier.schedule.models import Subscription

logger = get_logger(__name__)


class DispatchEventType(enum.StrEnum):
    """Structured log event types for dispatch cycles."""

    CYCLE_STARTED = "dispatch.cycle.started"
    CYCLE_COMPLETED = "dispatch.cycle.completed"
    CYCLE_FAILED = "dispatch.cycle.failed"
    SUBSCRIPTION_MATCHED = "dispatch.subscription.matched"
    SUBSCRIPTION_SUCCEEDED = "dispatch.subscription.succeeded"
    SUBSCRIPTION_FAILED = "dispatch.subscription.failed"


class DispatchEventLogger:
    """Emit structured dispatch events via femtologging."""

    def log_cycle_started(self, *, now: dt.datetime, evaluated: int) -> None:
        """Log the start of a cycle over *evaluated* active subscriptions."""
        log_event(
            logger,
            "INFO",
            DispatchEventType.CYCLE_STARTED,
            now=now.isoformat(),
            weekday=now.strftime("%a"),
            evaluated=evaluated,
        )

    def log_subscription_matched(self, *, subscription: Subscription) -> None:
        """Log that *subscription* is due and queued for export."""
        log_event(
            logger,
            "INFO",
            DispatchEventType.SUBSCRIPTION_MATCHED,
            subscription_id=subscription.id,
            name=subscription.name,
            frequency=subscription.schedule.frequency,
        )

    def log_subscription_succeeded(self, *, subscription_id: str) -> None:
        """Log a successful export for *subscription_id*."""
        log_event(
            logger,
            "INFO",
            DispatchEventType.SUBSCRIPTION_SUCCEEDED,
            subscription_id=subscription_id,
        )

    def log_subscription_failed(
        self,
        *,
        subscription_id: str,
        error: str,
        exc: BaseException | None = None,
    ) -> None:
        """Log a failed export for *subscription_id*.

        Parameters
        ----------
        subscription_id
            The subscription whose export failed.
        error
            Failure reason recorded in the cycle report.
        exc
            Raised exception, when the failure was an exception rather
            than an explicit failure result.

        """
        log_event(
            logger,
            "ERROR",
            DispatchEventType.SUBSCRIPTION_FAILED,
            exc_info=exc,
            subscription_id=subscription_id,
            error_type=type(exc).__name__ if exc is not None else "ExportFailure",
            error_message=error,
        )

    def log_cycle_completed(self, *, report: DispatchReport) -> None:
        """Log the totals of a finished cycle."""
        log_event(
            logger,
            "INFO",
            DispatchEventType.CYCLE_COMPLETED,
            evaluated=report.evaluated,
            processed=report.processed,
            succeeded=report.succeeded,
            failed=report.failed,
        )

    def log_cycle_failed(self, *, error: BaseException) -> None:
        """Log a cycle that could not run."""
        log_event(
            logger,
            "ERROR",
            DispatchEventType.CYCLE_FAILED,
            exc_info=error,
            error_type=type(error).__name__,
            error_message=str(error),
        )
