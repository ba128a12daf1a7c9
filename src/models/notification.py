from dataclasses import dataclass
from enum import Enum

from src.models.money import Money


class SourceShape(Enum):
    CLASSIC_ITEM = "CLASSIC_ITEM"  # notificationItems[].NotificationRequestItem
    MANAGEMENT_EVENT = "MANAGEMENT_EVENT"  # {"type": "recurring.token.*", "data": {...}}


@dataclass(frozen=True)
class RawNotificationItem:
    """A parsed but not yet verified item, tagged with the shape it came from."""

    shape: SourceShape
    fields: dict
    event_type: str | None = None  # management envelope "type"

    @property
    def requires_signature(self) -> bool:
        return self.shape is SourceShape.CLASSIC_ITEM


@dataclass(frozen=True)
class NormalizedBatch:
    items: tuple[RawNotificationItem, ...]
    live: bool | None = None


@dataclass(frozen=True)
class NotificationEvent:
    event_code: str
    success: bool
    merchant_reference: str
    psp_reference: str
    source_shape: SourceShape
    original_reference: str | None = None
    reason: str | None = None
    amount: Money | None = None
    stored_payment_method_id: str | None = None
    recurring_detail_reference: str | None = None
    merchant_account: str | None = None
    shopper_reference: str | None = None
    token_type: str | None = None

    def to_dict(self) -> dict:
        return {
            "eventCode": self.event_code,
            "success": self.success,
            "merchantReference": self.merchant_reference,
            "pspReference": self.psp_reference,
            "originalReference": self.original_reference,
            "reason": self.reason,
            "amountValue": self.amount.value if self.amount else None,
            "amountCurrency": self.amount.currency if self.amount else None,
            "storedPaymentMethodId": self.stored_payment_method_id,
            "recurringDetailReference": self.recurring_detail_reference,
            "merchantAccount": self.merchant_account,
            "shopperReference": self.shopper_reference,
            "tokenType": self.token_type,
            "sourceShape": self.source_shape.value,
        }
