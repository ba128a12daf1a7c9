"""E2E tests for the payment API routes backed by a recording processor client."""

import pytest
import requests

from src.errors import ProcessorError


pytestmark = pytest.mark.e2e

CARD = {"type": "scheme", "encryptedCardNumber": "test_4111111111111111"}


def _post(server, path: str, body: dict, **headers) -> requests.Response:
    return requests.post(f"{server.base_url}{path}", json=body, headers=headers, timeout=5)


class TestShopperPresentRoutes:
    """Payments started from the browser."""

    def test_payment_uses_default_amount_and_return_url(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/payments", {"paymentMethod": CARD})

        assert resp.status_code == 200
        assert resp.json()["resultCode"] == "Authorised"
        name, (request, key) = fake_client.last_call()
        assert name == "submit_payment"
        assert request["amount"] == {"currency": "EUR", "value": 9998}
        assert request["returnUrl"] == (
            f"{integration_server.base_url}/handleShopperRedirect?orderRef={request['reference']}"
        )
        assert request["shopperIP"] == "127.0.0.1"
        assert key

    def test_idempotency_key_header_is_forwarded(self, integration_server, fake_client):
        for _ in range(2):
            _post(integration_server, "/api/payments", {"paymentMethod": CARD}, **{"Idempotency-Key": "retry-1"})

        keys = [args[1] for name, args in fake_client.calls]
        assert keys == ["retry-1", "retry-1"]

    def test_fresh_key_per_request_without_header(self, integration_server, fake_client):
        for _ in range(2):
            _post(integration_server, "/api/payments", {"paymentMethod": CARD})

        keys = [args[1] for name, args in fake_client.calls]
        assert len(set(keys)) == 2

    def test_subscription_create_is_zero_value(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/subscription-create", {"paymentMethod": CARD})

        assert resp.status_code == 200
        request = fake_client.last_call()[1][0]
        assert request["amount"]["value"] == 0
        assert request["storePaymentMethod"] is True
        assert request["recurringProcessingModel"] == "Subscription"
        assert request["shopperReference"] == "KevinOliver"

    def test_payment_methods(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/paymentMethods", {})

        assert resp.status_code == 200
        assert resp.json()["paymentMethods"][0]["type"] == "scheme"
        assert fake_client.last_call() == ("list_payment_methods", ("TestMerchantAccount", "KevinOliver"))


class TestStoredMethodRoutes:
    """Subscription charges and token deletion."""

    def test_subscription_payment(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/subscription-payment", {"storedPaymentMethodId": "SPM-1"})

        assert resp.status_code == 200
        request = fake_client.last_call()[1][0]
        assert request["paymentMethod"]["storedPaymentMethodId"] == "SPM-1"
        assert request["shopperInteraction"] == "ContAuth"
        assert request["amount"]["value"] == 500

    def test_subscription_cancel_returns_204(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/subscriptions-cancel", {"storedPaymentMethodId": "SPM-1"})

        assert resp.status_code == 204
        assert resp.content == b""
        name, args = fake_client.last_call()
        assert name == "delete_stored_payment_method"
        assert args[:3] == ("SPM-1", "KevinOliver", "TestMerchantAccount")

    def test_missing_token_returns_400(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/subscription-payment", {"storedPaymentMethodId": " "})

        assert resp.status_code == 400
        assert resp.json()["error"] == "IdMissing"
        assert fake_client.calls == []


class TestModificationRoutes:
    """Amount adjustment, capture, cancel and refund."""

    def test_modify_amount_with_industry_usage(self, integration_server, fake_client):
        resp = _post(
            integration_server,
            "/api/modify-amount",
            {"pspReference": "PSP1", "amount": {"value": 6000, "currency": "EUR"}, "industryUsage": "delayedCharge"},
        )

        assert resp.status_code == 200
        name, (psp, request, key) = fake_client.last_call()
        assert name == "update_authorised_amount"
        assert psp == "PSP1"
        assert request["amount"] == {"currency": "EUR", "value": 6000}
        assert request["industryUsage"] == "delayedCharge"

    def test_invalid_industry_usage_returns_400(self, integration_server, fake_client):
        resp = _post(
            integration_server,
            "/api/modify-amount",
            {"pspReference": "PSP1", "amount": {"value": 6000, "currency": "EUR"}, "industryUsage": "hotel"},
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "IndustryUsageInvalid"
        assert fake_client.calls == []

    def test_capture_requires_amount(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/capture", {"pspReference": "PSP1"})

        assert resp.status_code == 400
        assert resp.json()["error"] == "AmountMissing"
        assert fake_client.calls == []

    def test_cancel(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/cancel", {"pspReference": "PSP1", "reference": "cancel-me"})

        assert resp.status_code == 200
        name, (psp, request, key) = fake_client.last_call()
        assert name == "cancel_authorised_payment"
        assert request["reference"] == "cancel-me"
        assert "amount" not in request

    def test_refund_without_psp_reference_returns_400(self, integration_server, fake_client):
        resp = _post(integration_server, "/api/refund", {"amount": {"value": 100, "currency": "EUR"}})

        assert resp.status_code == 400
        assert resp.json()["error"] == "PspReferenceMissing"


class TestProcessorErrors:
    """Processor failures are relayed with their status and body."""

    def test_processor_error_is_relayed(self, integration_server, fake_client):
        body = {"status": 422, "errorCode": "167", "message": "Original pspReference required"}
        fake_client.error = ProcessorError(422, body, "167")

        resp = _post(
            integration_server, "/api/refund",
            {"pspReference": "PSP1", "amount": {"value": 100, "currency": "EUR"}},
        )

        assert resp.status_code == 422
        assert resp.json() == body

    def test_unexpected_error_returns_500(self, integration_server, fake_client):
        fake_client.error = RuntimeError("boom")

        resp = _post(integration_server, "/api/payments", {"paymentMethod": CARD})

        assert resp.status_code == 500
        assert resp.json() == {"error": "internal error"}
