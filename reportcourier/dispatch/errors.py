"""Errors specific to the dispatch module."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatch module errors."""


class DispatchCycleError(DispatchError):
    """Raised when a dispatch cycle cannot run at all.

    Per-subscription failures never raise this; they are recorded in the
    cycle's :class:`~reportcourier.dispatch.models.DispatchReport` instead.

    Attributes
    ----------
    reason
        Human-readable description of the failure.

    """

    def __init__(self, reason: str) -> None:
        """Initialise with the failure reason."""
        self.reason = reason
        super().__init__(f"Dispatch cycle failed: {reason}")

    @classmethod
    def fetch_failed(cls, detail: str) -> DispatchCycleError:
        """Create an error for an unreadable active-subscription set."""
        return cls(f"could not fetch active subscriptions ({detail})")
