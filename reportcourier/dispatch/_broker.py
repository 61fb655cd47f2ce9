"""Dramatiq broker setup for the dispatch actors.

Actors call :func:`ensure_broker_configured` when they run, not at import
time, so importing this package never mutates global Dramatiq state.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_configured = False

_TRUTHY = frozenset({"1", "true", "yes"})
_PYTEST_ENV_VARS = ("PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS")


def _is_running_tests() -> bool:
    return "pytest" in sys.modules or any(key in os.environ for key in _PYTEST_ENV_VARS)


def stub_broker_allowed() -> bool:
    """Return whether an in-memory StubBroker may stand in for a real broker.

    True when ``COURIER_ALLOW_STUB_BROKER`` is truthy or the process runs
    under pytest.
    """
    allow_stub = os.environ.get("COURIER_ALLOW_STUB_BROKER", "")
    return allow_stub.strip().lower() in _TRUTHY or _is_running_tests()


def ensure_broker_configured() -> None:
    """Ensure a Dramatiq broker exists before an actor body runs.

    Idempotent and thread-safe across Dramatiq worker threads.

    Raises
    ------
    RuntimeError
        If no broker is configured and a stub broker is not allowed.

    """
    global _broker_configured  # noqa: PLW0603

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        try:
            current_broker = dramatiq.get_broker()
        except (ImportError, LookupError):
            # get_broker() falls back to RabbitMQ, whose client may be absent.
            current_broker = None

        if current_broker is None:
            if not stub_broker_allowed():
                message = (
                    "No Dramatiq broker configured. Set COURIER_ALLOW_STUB_BROKER=1 "
                    "for local runs or configure a real broker."
                )
                raise RuntimeError(message)
            dramatiq.set_broker(StubBroker())

        _broker_configured = True
