import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Self
from urllib.parse import urlsplit

from src.config import Settings
from src.errors import ProcessorError, ValidationError, ValidationReason
from src.observability.alerting import IntakeAlertManager
from src.observability.metrics import IntakeMetrics
from src.payments.client import CheckoutClient
from src.payments.orchestrator import PaymentLifecycleOrchestrator, ShopperContext
from src.webhook_intake.parser import NotificationParser
from src.webhook_intake.pipeline import WebhookIntakePipeline
from src.webhook_intake.recent import RecentEventBuffer
from src.webhook_intake.verifier import SignatureVerifier

logger = logging.getLogger(__name__)


class _IntegrationHandler(BaseHTTPRequestHandler):
    """HTTP request handler routing the merchant API and the webhook endpoint."""

    POST_ROUTES = {
        "/api/paymentMethods": "_payment_methods",
        "/api/payments": "_payments",
        "/api/payments/details": "_payment_details",
        "/api/subscription-create": "_subscription_create",
        "/api/subscription-payment": "_subscription_payment",
        "/api/subscriptions-cancel": "_subscription_cancel",
        "/api/preauthorisation": "_preauthorisation",
        "/api/modify-amount": "_modify_amount",
        "/api/capture": "_capture",
        "/api/cancel": "_cancel",
        "/api/refund": "_refund",
    }

    GET_ROUTES = {
        "/api/webhooks/recent": "_recent_webhooks",
        "/api/webhooks/stats": "_webhook_stats",
    }

    @property
    def app(self) -> "MerchantIntegrationServer":
        return self.server.app  # type: ignore[attr-defined]

    def do_POST(self):
        path = urlsplit(self.path).path
        try:
            content_length = int(self.headers.get("Content-Length", 0))
        except ValueError:
            content_length = -1
        if content_length < 0:
            self.close_connection = True
            self._send_json(400, {"error": ValidationReason.BODY_INVALID.value, "message": "invalid Content-Length"})
            return
        raw_body = self.rfile.read(content_length)

        if path == "/webhooks":
            result = self.app.pipeline.handle(raw_body)
            self._send_text(result.status_code, result.body)
            return

        route = self.POST_ROUTES.get(path)
        if route is None:
            self._send_json(404, {"error": "not found"})
            return

        try:
            body = json.loads(raw_body) if raw_body.strip() else {}
        except (json.JSONDecodeError, ValueError):
            self._send_json(400, {"error": ValidationReason.BODY_INVALID.value, "message": "invalid JSON"})
            return
        if not isinstance(body, dict):
            self._send_json(400, {"error": ValidationReason.BODY_INVALID.value, "message": "expected a JSON object"})
            return

        self._dispatch(route, body)

    def do_GET(self):
        route = self.GET_ROUTES.get(urlsplit(self.path).path)
        if route is None:
            self._send_json(404, {"error": "not found"})
            return
        self._dispatch(route)

    def _dispatch(self, route: str, *args) -> None:
        try:
            status, payload = getattr(self, route)(*args)
        except ValidationError as e:
            logger.warning("%s rejected: %s", self.path, e)
            self._send_json(400, {"error": e.reason.value, "message": str(e)})
            return
        except ProcessorError as e:
            self._send_json(e.status_code, e.body)
            return
        except Exception:
            logger.exception("Unexpected error handling %s %s", self.command, self.path)
            self._send_json(500, {"error": "internal error"})
            return

        if payload is None:
            self._send_empty(status)
        else:
            self._send_json(status, payload)

    # -- routes ----------------------------------------------------------------

    def _payment_methods(self, body):
        return 200, self.app.orchestrator.list_payment_methods()

    def _payments(self, body):
        return 200, self.app.orchestrator.create_payment(
            body.get("paymentMethod"),
            self._shopper_context(body),
            amount=body.get("amount"),
            idempotency_key=self._idempotency_key(),
        )

    def _payment_details(self, body):
        return 200, self.app.orchestrator.submit_payment_details(body, self._idempotency_key())

    def _subscription_create(self, body):
        return 200, self.app.orchestrator.create_subscription_setup(
            body.get("paymentMethod"),
            self._shopper_context(body),
            idempotency_key=self._idempotency_key(),
        )

    def _subscription_payment(self, body):
        return 200, self.app.orchestrator.charge_stored_method(
            body.get("storedPaymentMethodId"),
            amount=body.get("amount"),
            idempotency_key=self._idempotency_key(),
        )

    def _subscription_cancel(self, body):
        self.app.orchestrator.delete_stored_method(
            body.get("storedPaymentMethodId"),
            idempotency_key=self._idempotency_key(),
        )
        return 204, None

    def _preauthorisation(self, body):
        return 200, self.app.orchestrator.preauthorize(
            body.get("paymentMethod"),
            self._shopper_context(body),
            amount=body.get("amount"),
            reference=body.get("reference"),
            idempotency_key=self._idempotency_key(),
        )

    def _modify_amount(self, body):
        return 200, self.app.orchestrator.adjust_authorized_amount(
            body.get("pspReference"),
            body.get("amount"),
            industry_usage=body.get("industryUsage"),
            reference=body.get("reference"),
            idempotency_key=self._idempotency_key(),
        )

    def _capture(self, body):
        return 200, self.app.orchestrator.capture_authorized_payment(
            body.get("pspReference"),
            body.get("amount"),
            reference=body.get("reference"),
            idempotency_key=self._idempotency_key(),
        )

    def _cancel(self, body):
        return 200, self.app.orchestrator.cancel_authorized_payment(
            body.get("pspReference"),
            reference=body.get("reference"),
            idempotency_key=self._idempotency_key(),
        )

    def _refund(self, body):
        return 200, self.app.orchestrator.refund_captured_payment(
            body.get("pspReference"),
            body.get("amount"),
            reference=body.get("reference"),
            idempotency_key=self._idempotency_key(),
        )

    def _recent_webhooks(self):
        return 200, [event.to_dict() for event in self.app.buffer.snapshot()]

    def _webhook_stats(self):
        stats = self.app.metrics.snapshot()
        stats["alerts"] = self.app.alerts.get_alerts()
        return 200, stats

    # -- helpers ---------------------------------------------------------------

    def _idempotency_key(self) -> str | None:
        return self.headers.get("Idempotency-Key")

    def _shopper_context(self, body: dict) -> ShopperContext:
        scheme = self.headers.get("X-Forwarded-Proto", "http")
        host = self.headers.get("Host") or "%s:%d" % self.server.server_address[:2]
        browser_info = body.get("browserInfo")
        return ShopperContext(
            return_url_base=f"{scheme}://{host}",
            browser_info=browser_info if isinstance(browser_info, dict) else None,
            shopper_ip=self.client_address[0],
        )

    def _send_json(self, code: int, payload) -> None:
        data = json.dumps(payload, default=str).encode()
        self.send_response(code)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_text(self, code: int, text: str) -> None:
        data = text.encode()
        self.send_response(code)
        self.send_header("Content-Type", "text/plain")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def _send_empty(self, code: int) -> None:
        self.send_response(code)
        self.send_header("Content-Length", "0")
        self.end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class MerchantIntegrationServer:
    """Threaded HTTP server exposing the payment API and the webhook endpoint."""

    def __init__(
        self,
        orchestrator: PaymentLifecycleOrchestrator,
        pipeline: WebhookIntakePipeline,
        host: str = "127.0.0.1",
        port: int = 0,
    ):
        self.orchestrator = orchestrator
        self.pipeline = pipeline
        self._host = host
        self._port = port
        self._server: ThreadingHTTPServer | None = None
        self._thread: threading.Thread | None = None

    @property
    def buffer(self) -> RecentEventBuffer:
        return self.pipeline.buffer

    @property
    def metrics(self) -> IntakeMetrics:
        return self.pipeline.metrics

    @property
    def alerts(self) -> IntakeAlertManager:
        return self.pipeline.alerts

    def _bind(self) -> ThreadingHTTPServer:
        server = ThreadingHTTPServer((self._host, self._port), _IntegrationHandler)
        server.app = self  # type: ignore[attr-defined]
        # Get the actual port (useful when port=0)
        self._port = server.server_address[1]
        return server

    def start(self) -> Self:
        self._server = self._bind()
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.info("Merchant integration server listening on %s", self.base_url)
        return self

    def serve_forever(self) -> None:
        self._server = self._bind()
        logger.info("Merchant integration server listening on %s", self.base_url)
        try:
            self._server.serve_forever()
        finally:
            self._server.server_close()
            self._server = None

    def stop(self) -> None:
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def base_url(self) -> str:
        return f"http://{self._host}:{self._port}"

    @property
    def webhook_url(self) -> str:
        return f"{self.base_url}/webhooks"

    @property
    def port(self) -> int:
        return self._port


def build_pipeline(hmac_key: str) -> WebhookIntakePipeline:
    metrics = IntakeMetrics()
    return WebhookIntakePipeline(
        parser=NotificationParser(),
        verifier=SignatureVerifier(hmac_key),
        buffer=RecentEventBuffer(),
        metrics=metrics,
        alerts=IntakeAlertManager(metrics),
    )


def build_server(settings: Settings, client: CheckoutClient | None = None) -> MerchantIntegrationServer:
    """Wire the orchestrator and the intake pipeline from settings."""
    if client is None:
        client = CheckoutClient(
            api_key=settings.adyen_api_key,
            base_url=settings.checkout_base_url,
            timeout_seconds=settings.request_timeout_seconds,
        )
    orchestrator = PaymentLifecycleOrchestrator(
        client=client,
        merchant_account=settings.adyen_merchant_account,
        shopper_reference=settings.shopper_reference,
        defaults=settings.payment_defaults(),
    )
    return MerchantIntegrationServer(
        orchestrator=orchestrator,
        pipeline=build_pipeline(settings.adyen_hmac_key),
        host=settings.host,
        port=settings.port,
    )
