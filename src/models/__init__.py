from .money import Money
from .payment import (
    Channel, IndustryUsage, ModificationIntent, OperationKind,
    PaymentIntent, RecurringModel, ShopperInteraction,
)
from .notification import NormalizedBatch, NotificationEvent, RawNotificationItem, SourceShape

__all__ = [
    "Money",
    "Channel", "IndustryUsage", "ModificationIntent", "OperationKind",
    "PaymentIntent", "RecurringModel", "ShopperInteraction",
    "NormalizedBatch", "NotificationEvent", "RawNotificationItem", "SourceShape",
]
