import uuid

from src.utils.crypto import SIGNATURE_KEY, generate_signature


class NotificationFactory:
    """Builds processor notification payloads with sensible defaults."""

    @staticmethod
    def create_item(event_code: str = "AUTHORISATION", secret_hex: str | None = None, **overrides) -> dict:
        """A NotificationRequestItem, signed when ``secret_hex`` is given.

        Overrides apply before signing; pass ``additionalData`` to add keys next
        to the signature.
        """
        item = {
            "pspReference": f"{uuid.uuid4().int % 10**16:016d}",
            "originalReference": None,
            "merchantAccountCode": "TestMerchantAccount",
            "merchantReference": f"order-{uuid.uuid4().hex[:12]}",
            "amount": {"value": 9998, "currency": "EUR"},
            "eventCode": event_code,
            "success": "true",
            "eventDate": "2026-01-15T12:00:00+01:00",
            "paymentMethod": "visa",
            "reason": "",
            "additionalData": {},
        }
        if event_code in ("CAPTURE", "CANCELLATION", "REFUND", "AUTHORISATION_ADJUSTMENT"):
            item["originalReference"] = item["pspReference"]
            item["pspReference"] = f"{uuid.uuid4().int % 10**16:016d}"
        item.update(overrides)
        item["additionalData"] = dict(item.get("additionalData") or {})

        if secret_hex is not None:
            item["additionalData"][SIGNATURE_KEY] = generate_signature(item, secret_hex)
        return item

    @staticmethod
    def create_batch(*items: dict, live: bool = False) -> dict:
        return {
            "live": "true" if live else "false",
            "notificationItems": [{"NotificationRequestItem": item} for item in items],
        }

    @staticmethod
    def create_token_event(event_type: str = "recurring.token.created", **data_overrides) -> dict:
        data = {
            "merchantAccount": "TestMerchantAccount",
            "shopperReference": "KevinOliver",
            "storedPaymentMethodId": f"M{uuid.uuid4().hex[:15].upper()}",
            "type": "visastandardcredit",
            "operation": "created",
        }
        data.update(data_overrides)
        return {
            "createdAt": "2026-01-15T12:00:00+01:00",
            "environment": "test",
            "eventId": f"QBQQ{uuid.uuid4().hex[:12].upper()}",
            "type": event_type,
            "data": data,
        }
