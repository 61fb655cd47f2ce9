"""Errors specific to subscription storage and management."""

from __future__ import annotations


class SubscriptionError(Exception):
    """Base class for subscription module errors."""


class TimezoneAwareRequiredError(SubscriptionError, ValueError):
    """Raised when a naive datetime is bound to a UTC column."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} values must be timezone aware")


class SubscriptionNotFoundError(SubscriptionError):
    """Raised when a subscription id does not exist."""

    def __init__(self, subscription_id: str) -> None:
        """Initialise with the missing subscription id."""
        self.subscription_id = subscription_id
        super().__init__(f"Subscription not found: {subscription_id}")


class InvalidSubscriptionError(SubscriptionError):
    """Raised when subscription input fails validation.

    Attributes
    ----------
    reason
        Human-readable description of the validation failure.
    field
        Name of the offending input field, when known.

    """

    def __init__(self, reason: str, *, field: str | None = None) -> None:
        """Initialise with a validation reason and optional field name."""
        self.reason = reason
        self.field = field
        super().__init__(f"{field}: {reason}" if field is not None else reason)

    @classmethod
    def unknown_frequency(cls, value: str) -> InvalidSubscriptionError:
        """Create an error for a frequency outside the supported set."""
        return cls(f"unsupported frequency {value!r}", field="frequency")

    @classmethod
    def bad_time(cls, value: str) -> InvalidSubscriptionError:
        """Create an error for a schedule time that is not ``HH:MM``."""
        return cls(f"expected HH:MM, got {value!r}", field="schedule_time")
