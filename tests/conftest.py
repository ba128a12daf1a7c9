import pytest

from src.config import Settings
from src.merchant_server.server import MerchantIntegrationServer
from src.observability.alerting import IntakeAlertManager
from src.observability.metrics import IntakeMetrics
from src.payments.orchestrator import PaymentLifecycleOrchestrator, ShopperContext
from src.utils.factories import NotificationFactory
from src.webhook_intake.parser import NotificationParser
from src.webhook_intake.pipeline import WebhookIntakePipeline
from src.webhook_intake.recent import RecentEventBuffer
from src.webhook_intake.verifier import SignatureVerifier


HMAC_KEY = "44782DEF547AAA06C910C43932B1EB0C71FC68D9D0C057550C48EC2ACF6BA056"
MERCHANT_ACCOUNT = "TestMerchantAccount"
SHOPPER_REFERENCE = "KevinOliver"


class RecordingCheckoutClient:
    """Stands in for CheckoutClient; records every call and returns canned responses."""

    def __init__(self):
        self.calls: list[tuple[str, tuple]] = []
        self.responses: dict[str, dict | None] = {
            "submit_payment": {"resultCode": "Authorised", "pspReference": "PSP0000000000001"},
            "submit_payment_details": {"resultCode": "Authorised", "pspReference": "PSP0000000000001"},
            "list_payment_methods": {"paymentMethods": [{"type": "scheme", "name": "Cards"}]},
            "update_authorised_amount": {"status": "received", "pspReference": "MOD0000000000001"},
            "capture_authorised_payment": {"status": "received", "pspReference": "MOD0000000000002"},
            "cancel_authorised_payment": {"status": "received", "pspReference": "MOD0000000000003"},
            "refund_captured_payment": {"status": "received", "pspReference": "MOD0000000000004"},
            "delete_stored_payment_method": None,
        }
        self.error: Exception | None = None

    def _record(self, name: str, *args):
        self.calls.append((name, args))
        if self.error is not None:
            raise self.error
        return self.responses[name]

    def submit_payment(self, request, idempotency_key):
        return self._record("submit_payment", request, idempotency_key)

    def submit_payment_details(self, details, idempotency_key=None):
        return self._record("submit_payment_details", details, idempotency_key)

    def list_payment_methods(self, merchant_account, shopper_reference):
        return self._record("list_payment_methods", merchant_account, shopper_reference)

    def update_authorised_amount(self, psp_reference, request, idempotency_key):
        return self._record("update_authorised_amount", psp_reference, request, idempotency_key)

    def capture_authorised_payment(self, psp_reference, request, idempotency_key):
        return self._record("capture_authorised_payment", psp_reference, request, idempotency_key)

    def cancel_authorised_payment(self, psp_reference, request, idempotency_key):
        return self._record("cancel_authorised_payment", psp_reference, request, idempotency_key)

    def refund_captured_payment(self, psp_reference, request, idempotency_key):
        return self._record("refund_captured_payment", psp_reference, request, idempotency_key)

    def delete_stored_payment_method(self, stored_payment_method_id, shopper_reference, merchant_account, idempotency_key):
        return self._record(
            "delete_stored_payment_method",
            stored_payment_method_id, shopper_reference, merchant_account, idempotency_key,
        )

    def last_call(self) -> tuple[str, tuple]:
        return self.calls[-1]


@pytest.fixture
def hmac_key():
    return HMAC_KEY


@pytest.fixture
def verifier():
    return SignatureVerifier(HMAC_KEY)


@pytest.fixture
def parser():
    return NotificationParser()


@pytest.fixture
def recent_buffer():
    return RecentEventBuffer()


@pytest.fixture
def metrics():
    return IntakeMetrics(window_seconds=300)


@pytest.fixture
def alert_manager(metrics):
    return IntakeAlertManager(metrics=metrics, threshold=0.10, callback=None)


@pytest.fixture
def pipeline(parser, verifier, recent_buffer, metrics, alert_manager):
    return WebhookIntakePipeline(
        parser=parser,
        verifier=verifier,
        buffer=recent_buffer,
        metrics=metrics,
        alerts=alert_manager,
    )


@pytest.fixture
def notification_factory():
    return NotificationFactory


@pytest.fixture
def fake_client():
    return RecordingCheckoutClient()


@pytest.fixture
def orchestrator(fake_client):
    return PaymentLifecycleOrchestrator(
        client=fake_client,
        merchant_account=MERCHANT_ACCOUNT,
        shopper_reference=SHOPPER_REFERENCE,
    )


@pytest.fixture
def shopper():
    return ShopperContext(
        return_url_base="http://localhost:8080",
        browser_info={"userAgent": "pytest", "acceptHeader": "*/*"},
        shopper_ip="127.0.0.1",
    )


@pytest.fixture
def settings():
    return Settings(
        adyen_api_key="test-api-key",
        adyen_merchant_account=MERCHANT_ACCOUNT,
        adyen_hmac_key=HMAC_KEY,
        port=0,
        _env_file=None,
    )


@pytest.fixture
def integration_server(orchestrator, pipeline):
    """Running server backed by the recording client and the fixture pipeline."""
    server = MerchantIntegrationServer(orchestrator=orchestrator, pipeline=pipeline)
    server.start()
    yield server
    server.stop()
