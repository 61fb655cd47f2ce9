"""Dispatch cycle: select due subscriptions and hand them to the exporter."""

from __future__ import annotations

from .cycle import run_dispatch_cycle, select_due
from .errors import DispatchCycleError, DispatchError
from .models import DispatchOutcome, DispatchReport, ExportFn, ExportOutcome
from .observability import DispatchEventLogger, DispatchEventType
from .service import DispatchService

__all__ = [
    "DispatchCycleError",
    "DispatchError",
    "DispatchEventLogger",
    "DispatchEventType",
    "DispatchOutcome",
    "DispatchReport",
    "DispatchService",
    "ExportFn",
    "ExportOutcome",
    "run_dispatch_cycle",
    "select_due",
]
