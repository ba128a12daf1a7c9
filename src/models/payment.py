from dataclasses import dataclass, field
from enum import Enum

from src.errors import ValidationError, ValidationReason
from src.models.money import Money


class Channel(Enum):
    WEB = "Web"


class ShopperInteraction(Enum):
    ECOMMERCE = "Ecommerce"
    CONTINUED_AUTH = "ContAuth"


class RecurringModel(Enum):
    SUBSCRIPTION = "Subscription"


class IndustryUsage(Enum):
    DELAYED_CHARGE = "delayedCharge"
    INSTALLMENT = "installment"
    NO_SHOW = "noShow"


class OperationKind(Enum):
    CAPTURE = "CAPTURE"
    CANCEL = "CANCEL"
    REFUND = "REFUND"
    AMOUNT_ADJUST = "AMOUNT_ADJUST"

    @property
    def requires_amount(self) -> bool:
        return self is not OperationKind.CANCEL

    @property
    def reference_prefix(self) -> str:
        return _REFERENCE_PREFIXES[self]


_REFERENCE_PREFIXES = {
    OperationKind.CAPTURE: "capture",
    OperationKind.CANCEL: "cancel",
    OperationKind.REFUND: "refund",
    OperationKind.AMOUNT_ADJUST: "adjust",
}

# Always attempt 3DS and prefer the native flow over a redirect.
AUTHENTICATION_DATA = {
    "attemptAuthentication": "always",
    "threeDSRequestData": {"nativeThreeDS": "preferred"},
}


@dataclass(frozen=True)
class PaymentIntent:
    """One outbound /payments request. Lives for a single request-response cycle."""

    reference: str
    merchant_account: str
    amount: Money
    payment_method: dict
    shopper_interaction: ShopperInteraction
    idempotency_key: str
    shopper_reference: str | None = None
    channel: Channel | None = None
    recurring_model: RecurringModel | None = None
    store_for_future_use: bool = False
    return_url: str | None = None
    origin: str | None = None
    browser_info: dict | None = None
    shopper_ip: str | None = None
    authentication_data: dict | None = None
    billing_address: dict | None = None

    def to_request(self) -> dict:
        request = {
            "merchantAccount": self.merchant_account,
            "reference": self.reference,
            "amount": self.amount.to_dict(),
            "paymentMethod": self.payment_method,
            "shopperInteraction": self.shopper_interaction.value,
        }
        if self.channel is not None:
            request["channel"] = self.channel.value
        if self.shopper_reference is not None:
            request["shopperReference"] = self.shopper_reference
        if self.recurring_model is not None:
            request["recurringProcessingModel"] = self.recurring_model.value
        if self.store_for_future_use:
            request["storePaymentMethod"] = True
        optional = {
            "returnUrl": self.return_url,
            "origin": self.origin,
            "browserInfo": self.browser_info,
            "shopperIP": self.shopper_ip,
            "authenticationData": self.authentication_data,
            "billingAddress": self.billing_address,
        }
        request.update({k: v for k, v in optional.items() if v is not None})
        return request


@dataclass(frozen=True)
class ModificationIntent:
    """A capture, cancel, refund or amount update against an existing authorisation.

    The amount must be present exactly when the operation needs one; anything
    else is a validation failure raised at construction.
    """

    psp_reference: str
    operation_kind: OperationKind
    reference: str
    merchant_account: str
    idempotency_key: str
    amount: Money | None = None
    industry_usage: IndustryUsage | None = field(default=None)

    def __post_init__(self):
        if not self.psp_reference or not self.psp_reference.strip():
            raise ValidationError(ValidationReason.PSP_REFERENCE_MISSING)
        if self.operation_kind.requires_amount and self.amount is None:
            raise ValidationError(
                ValidationReason.AMOUNT_MISSING,
                f"{self.operation_kind.value} requires an amount",
            )
        if not self.operation_kind.requires_amount and self.amount is not None:
            raise ValidationError(
                ValidationReason.BODY_INVALID,
                f"{self.operation_kind.value} does not take an amount",
            )
        if self.industry_usage is not None and self.operation_kind is not OperationKind.AMOUNT_ADJUST:
            raise ValidationError(
                ValidationReason.INDUSTRY_USAGE_INVALID,
                "industryUsage only applies to amount updates",
            )

    def to_request(self) -> dict:
        request = {
            "merchantAccount": self.merchant_account,
            "reference": self.reference,
        }
        if self.amount is not None:
            request["amount"] = self.amount.to_dict()
        if self.industry_usage is not None:
            request["industryUsage"] = self.industry_usage.value
        return request
