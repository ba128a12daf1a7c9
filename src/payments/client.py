import logging
import time
from urllib.parse import quote

import requests

from src.errors import ProcessorError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://checkout-test.adyen.com/v71"


class CheckoutClient:
    """Thin JSON client for the processor's Checkout API.

    Each call is a single attempt: failures surface as ProcessorError and the
    caller decides whether to retry with the same idempotency key.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 30,
        session: requests.Session | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def submit_payment(self, request: dict, idempotency_key: str) -> dict:
        return self._call("POST", "/payments", request, idempotency_key)

    def submit_payment_details(self, details: dict, idempotency_key: str | None = None) -> dict:
        return self._call("POST", "/payments/details", details, idempotency_key)

    def list_payment_methods(self, merchant_account: str, shopper_reference: str) -> dict:
        request = {"merchantAccount": merchant_account, "shopperReference": shopper_reference}
        return self._call("POST", "/paymentMethods", request)

    def update_authorised_amount(self, psp_reference: str, request: dict, idempotency_key: str) -> dict:
        return self._call("POST", f"/payments/{_segment(psp_reference)}/amountUpdates", request, idempotency_key)

    def capture_authorised_payment(self, psp_reference: str, request: dict, idempotency_key: str) -> dict:
        return self._call("POST", f"/payments/{_segment(psp_reference)}/captures", request, idempotency_key)

    def cancel_authorised_payment(self, psp_reference: str, request: dict, idempotency_key: str) -> dict:
        return self._call("POST", f"/payments/{_segment(psp_reference)}/cancels", request, idempotency_key)

    def refund_captured_payment(self, psp_reference: str, request: dict, idempotency_key: str) -> dict:
        return self._call("POST", f"/payments/{_segment(psp_reference)}/refunds", request, idempotency_key)

    def delete_stored_payment_method(
        self,
        stored_payment_method_id: str,
        shopper_reference: str,
        merchant_account: str,
        idempotency_key: str,
    ) -> None:
        self._call(
            "DELETE",
            f"/storedPaymentMethods/{_segment(stored_payment_method_id)}",
            idempotency_key=idempotency_key,
            params={"shopperReference": shopper_reference, "merchantAccount": merchant_account},
        )

    def _call(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        idempotency_key: str | None = None,
        params: dict | None = None,
    ) -> dict | None:
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
        }
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        url = self.base_url + path
        start = time.monotonic()
        try:
            resp = self.session.request(
                method,
                url,
                json=payload,
                params=params,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.Timeout:
            logger.warning("%s %s timed out after %.0fs", method, path, self.timeout_seconds)
            raise ProcessorError(504, {"errorType": "transport", "message": "timeout"}) from None
        except requests.exceptions.RequestException as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ProcessorError(502, {"errorType": "transport", "message": str(e)}) from None

        elapsed_ms = (time.monotonic() - start) * 1000
        logger.info("%s %s -> %d in %.1fms", method, path, resp.status_code, elapsed_ms)

        if resp.status_code >= 400:
            body = _json_or_none(resp)
            if not isinstance(body, dict):
                body = {"message": resp.text}
            raise ProcessorError(resp.status_code, body, body.get("errorCode"))

        if resp.status_code == 204 or not resp.content:
            return None
        body = _json_or_none(resp)
        if not isinstance(body, dict):
            raise ProcessorError(502, {"errorType": "transport", "message": "non-JSON processor response"})
        return body


def _segment(value: str) -> str:
    return quote(value, safe="")


def _json_or_none(resp: requests.Response):
    try:
        return resp.json()
    except ValueError:
        return None
