import json
import logging
from collections.abc import Mapping

from src.errors import ParseError, ValidationError
from src.models.notification import (
    NormalizedBatch, NotificationEvent, RawNotificationItem, SourceShape,
)
from src.utils.amounts import decode_amount

logger = logging.getLogger(__name__)

MANAGEMENT_TYPE_PREFIX = "recurring.token."

# additionalData keys the stored token can appear under, in lookup order
STORED_METHOD_KEYS = ("tokenization.storedPaymentMethodId", "storedPaymentMethodId")
RECURRING_DETAIL_KEY = "recurring.recurringDetailReference"


class NotificationParser:
    """Detects which of the two webhook shapes a body is and splits it into items.

    Classic bodies (``notificationItems``) are tried first; management event
    envelopes (``type`` + ``data``) only when the classic shape does not match
    or has no items.
    """

    def parse(self, raw_body: bytes | str) -> NormalizedBatch:
        try:
            payload = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError, RecursionError) as e:
            raise ParseError(message=f"body is not JSON: {e}") from None

        if not isinstance(payload, dict):
            raise ParseError(message="body is not a JSON object")

        batch = self._parse_classic(payload)
        if batch is not None:
            return batch

        batch = self._parse_management(payload)
        if batch is not None:
            return batch

        logger.warning("Webhook payload is missing notification items")
        raise ParseError()

    def _parse_classic(self, payload: dict) -> NormalizedBatch | None:
        entries = payload.get("notificationItems")
        if not isinstance(entries, list) or not entries:
            return None

        items = []
        for entry in entries:
            item = entry.get("NotificationRequestItem") if isinstance(entry, dict) else None
            if not isinstance(item, dict):
                logger.warning("Unable to parse webhook payload as classic notification, trying management events")
                return None
            items.append(RawNotificationItem(shape=SourceShape.CLASSIC_ITEM, fields=item))
        return NormalizedBatch(items=tuple(items), live=_as_bool(payload.get("live")))

    def _parse_management(self, payload: dict) -> NormalizedBatch | None:
        event_type = payload.get("type")
        data = payload.get("data")
        if not isinstance(event_type, str) or not isinstance(data, dict):
            return None
        if not event_type.lower().startswith(MANAGEMENT_TYPE_PREFIX):
            return None

        fields = {
            "merchantAccount": _text(data.get("merchantAccount")),
            "shopperReference": _text(data.get("shopperReference")),
            "storedPaymentMethodId": _text(data.get("storedPaymentMethodId")),
            "type": _text(data.get("type")),
        }
        item = RawNotificationItem(
            shape=SourceShape.MANAGEMENT_EVENT,
            fields=fields,
            event_type=event_type,
        )
        return NormalizedBatch(items=(item,), live=_as_live_environment(payload.get("environment")))


def to_event(item: RawNotificationItem) -> NotificationEvent:
    """Normalize a (verified) raw item into an immutable NotificationEvent."""
    if item.shape is SourceShape.MANAGEMENT_EVENT:
        return NotificationEvent(
            event_code=item.event_type or "",
            success=True,
            merchant_reference="",
            psp_reference="",
            source_shape=item.shape,
            stored_payment_method_id=item.fields.get("storedPaymentMethodId"),
            merchant_account=item.fields.get("merchantAccount"),
            shopper_reference=item.fields.get("shopperReference"),
            token_type=item.fields.get("type"),
        )

    fields = item.fields
    additional = fields.get("additionalData")
    if not isinstance(additional, Mapping):
        additional = {}
    stored_method = next(
        (additional[k] for k in STORED_METHOD_KEYS if additional.get(k) is not None),
        None,
    )
    return NotificationEvent(
        event_code=_text(fields.get("eventCode")) or "",
        success=bool(_as_bool(fields.get("success"))),
        merchant_reference=_text(fields.get("merchantReference")) or "",
        psp_reference=_text(fields.get("pspReference")) or "",
        source_shape=item.shape,
        original_reference=_text(fields.get("originalReference")),
        reason=_text(fields.get("reason")),
        amount=_event_amount(fields.get("amount")),
        stored_payment_method_id=stored_method,
        recurring_detail_reference=additional.get(RECURRING_DETAIL_KEY),
        merchant_account=_text(fields.get("merchantAccountCode")),
    )


def _event_amount(raw_amount):
    if not isinstance(raw_amount, Mapping) or raw_amount.get("value") is None:
        return None
    try:
        return decode_amount(raw_amount.get("value"), raw_amount.get("currency"))
    except ValidationError as e:
        logger.warning("Ignoring unreadable notification amount %r: %s", raw_amount, e)
        return None


def _text(value) -> str | None:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_bool(value) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return None


def _as_live_environment(value) -> bool | None:
    if not isinstance(value, str):
        return None
    return value.strip().lower() == "live"
