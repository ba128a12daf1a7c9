"""Outbound payment and modification requests against the processor.

Every operation validates its input first (raising ValidationError before any
processor call), builds the request, and returns the processor response
unchanged. Every mutating call carries an idempotency key: the caller's key
when one is supplied, otherwise a fresh UUID4. A caller retrying the same
logical operation must pass the same key again.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from src.errors import ValidationError, ValidationReason
from src.models.money import Money
from src.models.payment import (
    AUTHENTICATION_DATA, Channel, IndustryUsage, ModificationIntent,
    OperationKind, PaymentIntent, RecurringModel, ShopperInteraction,
)
from src.payments.client import CheckoutClient
from src.utils.amounts import DEFAULT_CURRENCY, amount_from_mapping

logger = logging.getLogger(__name__)

REDIRECT_PATH = "/handleShopperRedirect"


@dataclass(frozen=True)
class PaymentDefaults:
    currency: str = DEFAULT_CURRENCY
    payment_amount_minor: int = 9998
    preauthorisation_amount_minor: int = 4999
    subscription_amount_minor: int = 500
    # sent with one-off payments only; None leaves it out
    billing_address: dict | None = None


@dataclass(frozen=True)
class ShopperContext:
    """What the inbound request tells us about the shopper's browser session."""

    return_url_base: str
    browser_info: dict | None = None
    shopper_ip: str | None = None


def new_idempotency_key() -> str:
    return str(uuid.uuid4())


def resolve_idempotency_key(key: str | None) -> str:
    if key is not None and key.strip():
        return key.strip()
    return new_idempotency_key()


def _resolve_reference(reference, prefix: str | None = None) -> str:
    if isinstance(reference, str) and reference.strip():
        return reference
    generated = str(uuid.uuid4())
    return f"{prefix}-{generated}" if prefix else generated


def _require_text(value, reason: ValidationReason, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(reason, message)
    return value


def _require_payment_method(payment_method) -> dict:
    if not isinstance(payment_method, Mapping) or not payment_method:
        raise ValidationError(ValidationReason.PAYMENT_METHOD_MISSING, "paymentMethod is required")
    return dict(payment_method)


def _parse_industry_usage(raw) -> IndustryUsage | None:
    if raw is None:
        return None
    if isinstance(raw, str):
        if not raw.strip():
            return None
        try:
            return IndustryUsage(raw)
        except ValueError:
            pass
    logger.warning("Invalid industryUsage provided: %s", raw)
    raise ValidationError(ValidationReason.INDUSTRY_USAGE_INVALID, f"industryUsage {raw!r}")


class PaymentLifecycleOrchestrator:
    def __init__(
        self,
        client: CheckoutClient,
        merchant_account: str,
        shopper_reference: str,
        defaults: PaymentDefaults | None = None,
    ):
        self.client = client
        self.merchant_account = merchant_account
        self.shopper_reference = shopper_reference
        self.defaults = defaults or PaymentDefaults()

    # -- shopper-present payments -------------------------------------------

    def create_payment(
        self,
        payment_method,
        shopper: ShopperContext,
        amount=None,
        idempotency_key: str | None = None,
    ) -> dict:
        method = _require_payment_method(payment_method)
        money = self._amount_or_default(amount, self.defaults.payment_amount_minor)
        intent = self._shopper_present_intent(
            method, money, _resolve_reference(None), shopper, idempotency_key,
            billing_address=self.defaults.billing_address,
        )
        return self._submit("Payments", intent)

    def create_subscription_setup(
        self,
        payment_method,
        shopper: ShopperContext,
        idempotency_key: str | None = None,
    ) -> dict:
        """Zero-value authorisation that stores the card as a reusable token."""
        method = _require_payment_method(payment_method)
        intent = self._shopper_present_intent(
            method,
            Money(currency=self.defaults.currency, value=0),
            _resolve_reference(None),
            shopper,
            idempotency_key,
            shopper_reference=self.shopper_reference,
            recurring_model=RecurringModel.SUBSCRIPTION,
            store_for_future_use=True,
        )
        return self._submit("Subscription tokenization", intent)

    def preauthorize(
        self,
        payment_method,
        shopper: ShopperContext,
        amount=None,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        method = _require_payment_method(payment_method)
        money = self._amount_or_default(amount, self.defaults.preauthorisation_amount_minor)
        uses_token = bool(method.get("storedPaymentMethodId"))
        intent = self._shopper_present_intent(
            method,
            money,
            _resolve_reference(reference),
            shopper,
            idempotency_key,
            shopper_reference=self.shopper_reference if uses_token else None,
            recurring_model=RecurringModel.SUBSCRIPTION if uses_token else None,
        )
        return self._submit("Preauthorisation", intent)

    # -- stored payment methods ---------------------------------------------

    def charge_stored_method(
        self,
        stored_payment_method_id,
        amount=None,
        idempotency_key: str | None = None,
    ) -> dict:
        """Shopper-not-present charge against a previously stored token."""
        token = _require_text(
            stored_payment_method_id, ValidationReason.ID_MISSING, "storedPaymentMethodId is required",
        )
        money = self._amount_or_default(amount, self.defaults.subscription_amount_minor)
        intent = PaymentIntent(
            reference=_resolve_reference(None, "subscription-payment"),
            merchant_account=self.merchant_account,
            amount=money,
            payment_method={"type": "scheme", "storedPaymentMethodId": token},
            shopper_interaction=ShopperInteraction.CONTINUED_AUTH,
            idempotency_key=resolve_idempotency_key(idempotency_key),
            shopper_reference=self.shopper_reference,
            recurring_model=RecurringModel.SUBSCRIPTION,
        )
        return self._submit("Subscription payment", intent)

    def delete_stored_method(self, stored_payment_method_id, idempotency_key: str | None = None) -> None:
        token = _require_text(
            stored_payment_method_id, ValidationReason.ID_MISSING, "storedPaymentMethodId is required",
        )
        logger.info("Deleting stored payment method %s for shopper %s", token, self.shopper_reference)
        self.client.delete_stored_payment_method(
            token,
            self.shopper_reference,
            self.merchant_account,
            resolve_idempotency_key(idempotency_key),
        )

    def list_payment_methods(self) -> dict:
        logger.info("Retrieving available payment methods for %s", self.merchant_account)
        return self.client.list_payment_methods(self.merchant_account, self.shopper_reference)

    def submit_payment_details(self, details, idempotency_key: str | None = None) -> dict:
        if not isinstance(details, Mapping) or not details:
            raise ValidationError(ValidationReason.BODY_INVALID, "payment details must be an object")
        return self.client.submit_payment_details(dict(details), resolve_idempotency_key(idempotency_key))

    # -- modifications --------------------------------------------------------

    def adjust_authorized_amount(
        self,
        psp_reference,
        amount,
        industry_usage=None,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        psp = _require_text(psp_reference, ValidationReason.PSP_REFERENCE_MISSING, "pspReference is required")
        # an amount object without a value adjusts to zero
        money = amount_from_mapping(amount, 0, self.defaults.currency)
        usage = _parse_industry_usage(industry_usage)
        intent = self._modification(OperationKind.AMOUNT_ADJUST, psp, reference, idempotency_key, money, usage)
        return self._modify(intent)

    def capture_authorized_payment(
        self,
        psp_reference,
        amount,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        psp = _require_text(psp_reference, ValidationReason.PSP_REFERENCE_MISSING, "pspReference is required")
        money = amount_from_mapping(amount, None, self.defaults.currency)
        intent = self._modification(OperationKind.CAPTURE, psp, reference, idempotency_key, money)
        return self._modify(intent)

    def cancel_authorized_payment(
        self,
        psp_reference,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        psp = _require_text(psp_reference, ValidationReason.PSP_REFERENCE_MISSING, "pspReference is required")
        intent = self._modification(OperationKind.CANCEL, psp, reference, idempotency_key)
        return self._modify(intent)

    def refund_captured_payment(
        self,
        psp_reference,
        amount,
        reference: str | None = None,
        idempotency_key: str | None = None,
    ) -> dict:
        psp = _require_text(psp_reference, ValidationReason.PSP_REFERENCE_MISSING, "pspReference is required")
        money = amount_from_mapping(amount, None, self.defaults.currency)
        intent = self._modification(OperationKind.REFUND, psp, reference, idempotency_key, money)
        return self._modify(intent)

    # -- helpers --------------------------------------------------------------

    def _amount_or_default(self, amount, default_minor_units: int) -> Money:
        if amount is None:
            return Money(currency=self.defaults.currency, value=default_minor_units)
        return amount_from_mapping(amount, default_minor_units, self.defaults.currency)

    def _shopper_present_intent(
        self,
        method: dict,
        money: Money,
        reference: str,
        shopper: ShopperContext,
        idempotency_key: str | None,
        shopper_reference: str | None = None,
        recurring_model: RecurringModel | None = None,
        store_for_future_use: bool = False,
        billing_address: dict | None = None,
    ) -> PaymentIntent:
        base = shopper.return_url_base.rstrip("/")
        return PaymentIntent(
            reference=reference,
            merchant_account=self.merchant_account,
            amount=money,
            payment_method=method,
            shopper_interaction=ShopperInteraction.ECOMMERCE,
            idempotency_key=resolve_idempotency_key(idempotency_key),
            shopper_reference=shopper_reference,
            channel=Channel.WEB,
            recurring_model=recurring_model,
            store_for_future_use=store_for_future_use,
            return_url=f"{base}{REDIRECT_PATH}?orderRef={reference}",
            origin=base,
            browser_info=shopper.browser_info,
            shopper_ip=shopper.shopper_ip,
            authentication_data=AUTHENTICATION_DATA,
            billing_address=billing_address,
        )

    def _modification(
        self,
        kind: OperationKind,
        psp_reference: str,
        reference,
        idempotency_key: str | None,
        amount: Money | None = None,
        industry_usage: IndustryUsage | None = None,
    ) -> ModificationIntent:
        return ModificationIntent(
            psp_reference=psp_reference,
            operation_kind=kind,
            reference=_resolve_reference(reference, kind.reference_prefix),
            merchant_account=self.merchant_account,
            idempotency_key=resolve_idempotency_key(idempotency_key),
            amount=amount,
            industry_usage=industry_usage,
        )

    def _submit(self, label: str, intent: PaymentIntent) -> dict:
        logger.info(
            "%s request reference=%s amount=%s %d idempotencyKey=%s",
            label, intent.reference, intent.amount.currency, intent.amount.value, intent.idempotency_key,
        )
        response = self.client.submit_payment(intent.to_request(), intent.idempotency_key)
        logger.info("%s response resultCode=%s", label, (response or {}).get("resultCode"))
        return response

    def _modify(self, intent: ModificationIntent) -> dict:
        send = {
            OperationKind.AMOUNT_ADJUST: self.client.update_authorised_amount,
            OperationKind.CAPTURE: self.client.capture_authorised_payment,
            OperationKind.CANCEL: self.client.cancel_authorised_payment,
            OperationKind.REFUND: self.client.refund_captured_payment,
        }[intent.operation_kind]
        logger.info(
            "%s request for %s reference=%s idempotencyKey=%s",
            intent.operation_kind.value, intent.psp_reference, intent.reference, intent.idempotency_key,
        )
        response = send(intent.psp_reference, intent.to_request(), intent.idempotency_key)
        logger.info("%s response status=%s", intent.operation_kind.value, (response or {}).get("status"))
        return response
