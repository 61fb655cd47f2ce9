"""The dispatch loop: match subscriptions and export the due ones.

Exports run one at a time in the order subscriptions were fetched. Each
export may spend minutes polling the Power BI export job, and running them
sequentially bounds the load placed on the rendering API. A failing export
is recorded and the loop moves on; nothing here writes dispatch state.
"""

from __future__ import annotations

import typing as typ

from reportcourier.dispatch.models import DispatchOutcome, DispatchReport
from reportcourier.schedule.matcher import is_due

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from reportcourier.dispatch.models import ExportFn
    from reportcourier.dispatch.observability import DispatchEventLogger
    from reportcourier.schedule.models import Subscription

_UNKNOWN_ERROR = "Unknown error"


def select_due(
    subscriptions: cabc.Iterable[Subscription],
    now: dt.datetime,
) -> list[Subscription]:
    """Return the subscriptions due at *now*, preserving input order."""
    return [sub for sub in subscriptions if is_due(sub.schedule, sub.state, now)]


async def _dispatch_one(
    subscription_id: str,
    export_fn: ExportFn,
    event_logger: DispatchEventLogger | None,
) -> DispatchOutcome:
    try:
        result = await export_fn(subscription_id)
    except Exception as exc:  # noqa: BLE001 - one failure must not abort the cycle
        error = str(exc) or _UNKNOWN_ERROR
        if event_logger is not None:
            event_logger.log_subscription_failed(
                subscription_id=subscription_id, error=error, exc=exc
            )
        return DispatchOutcome(id=subscription_id, success=False, error=error)

    # Results without the ExportResult shape count as failures.
    if getattr(result, "success", False) is True:
        if event_logger is not None:
            event_logger.log_subscription_succeeded(subscription_id=subscription_id)
        return DispatchOutcome(id=subscription_id, success=True)

    error = getattr(result, "error", None) or _UNKNOWN_ERROR
    if event_logger is not None:
        event_logger.log_subscription_failed(
            subscription_id=subscription_id, error=error
        )
    return DispatchOutcome(id=subscription_id, success=False, error=error)


async def run_dispatch_cycle(
    subscriptions: cabc.Sequence[Subscription],
    now: dt.datetime,
    export_fn: ExportFn,
    *,
    event_logger: DispatchEventLogger | None = None,
) -> DispatchReport:
    """Export every due subscription and report the outcomes.

    Parameters
    ----------
    subscriptions
        Active subscriptions in store order.
    now
        Evaluation instant for the matcher.
    export_fn
        Async callable that exports and delivers one subscription by id.
    event_logger
        Optional structured event logger.

    Returns
    -------
    DispatchReport
        Counts of evaluated and matched subscriptions and one outcome per
        matched subscription, in dispatch order.

    """
    if event_logger is not None:
        event_logger.log_cycle_started(now=now, evaluated=len(subscriptions))

    due = select_due(subscriptions, now)
    outcomes: list[DispatchOutcome] = []
    for subscription in due:
        if event_logger is not None:
            event_logger.log_subscription_matched(subscription=subscription)
        outcomes.append(await _dispatch_one(subscription.id, export_fn, event_logger))

    report = DispatchReport(
        evaluated=len(subscriptions),
        matched=len(due),
        results=tuple(outcomes),
    )
    if event_logger is not None:
        event_logger.log_cycle_completed(report=report)
    return report


__all__ = ["run_dispatch_cycle", "select_due"]
