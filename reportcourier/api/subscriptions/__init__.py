"""HTTP resources for dispatching, exporting and managing subscriptions."""

from __future__ import annotations

from .resources import (
    DeliveryLogResource,
    ExportResource,
    ProcessResource,
    SubscriptionCollectionResource,
    SubscriptionItemResource,
    SubscriptionResourceDependencies,
)

__all__ = [
    "DeliveryLogResource",
    "ExportResource",
    "ProcessResource",
    "SubscriptionCollectionResource",
    "SubscriptionItemResource",
    "SubscriptionResourceDependencies",
]
