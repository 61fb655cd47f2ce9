"""Result structures produced by a dispatch cycle."""

from __future__ import annotations

import typing as typ

import msgspec


class ExportOutcome(typ.Protocol):
    """Shape of the value returned by an export callable."""

    @property
    def success(self) -> bool:
        """Whether the export and delivery succeeded."""
        ...

    @property
    def error(self) -> str | None:
        """Human-readable failure reason, if any."""
        ...


type ExportFn = typ.Callable[[str], typ.Awaitable[ExportOutcome]]


class DispatchOutcome(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Outcome of dispatching one matched subscription.

    Attributes
    ----------
    id
        Subscription identifier.
    success
        Whether the export callable reported success.
    error
        Failure reason; omitted from the encoded payload on success.

    """

    id: str
    success: bool
    error: str | None = None


class DispatchReport(msgspec.Struct, kw_only=True, frozen=True):
    """Summary of one dispatch cycle.

    Attributes
    ----------
    evaluated
        Number of subscriptions passed to the matcher.
    matched
        Number of subscriptions found due.
    results
        Outcome per matched subscription, in dispatch order.

    """

    evaluated: int
    matched: int
    results: tuple[DispatchOutcome, ...] = ()

    @property
    def processed(self) -> int:
        """Return the number of subscriptions handed to the exporter."""
        return self.matched

    @property
    def succeeded(self) -> int:
        """Return the number of successful dispatches."""
        return sum(1 for outcome in self.results if outcome.success)

    @property
    def failed(self) -> int:
        """Return the number of failed dispatches."""
        return len(self.results) - self.succeeded

    def to_payload(self) -> dict[str, typ.Any]:
        """Return the JSON body reported by the process endpoint."""
        return {
            "success": True,
            "processed": self.processed,
            "results": msgspec.to_builtins(self.results),
        }
