"""Subscription store, mapping helpers and management service."""

from __future__ import annotations

from .errors import (
    InvalidSubscriptionError,
    SubscriptionError,
    SubscriptionNotFoundError,
)
from .mapping import to_schedule_spec, to_subscription
from .models import RecipientInput, SubscriptionInput
from .service import SubscriptionService
from .storage import (
    Base,
    Company,
    Dashboard,
    DeliveryStatus,
    EmbedType,
    ExportFormat,
    PowerBICredential,
    ReportSubscription,
    SubscriptionLog,
    SubscriptionRecipient,
    init_storage,
)

__all__ = [
    "Base",
    "Company",
    "Dashboard",
    "DeliveryStatus",
    "EmbedType",
    "ExportFormat",
    "InvalidSubscriptionError",
    "PowerBICredential",
    "RecipientInput",
    "ReportSubscription",
    "SubscriptionError",
    "SubscriptionInput",
    "SubscriptionLog",
    "SubscriptionNotFoundError",
    "SubscriptionRecipient",
    "SubscriptionService",
    "init_storage",
    "to_schedule_spec",
    "to_subscription",
]
