import logging
from dataclasses import dataclass, field
from enum import Enum

from src.errors import ParseError, SignatureError
from src.models.notification import NormalizedBatch, NotificationEvent, SourceShape
from src.observability.alerting import IntakeAlertManager
from src.observability.metrics import IntakeMetrics
from src.webhook_intake.parser import NotificationParser, to_event
from src.webhook_intake.recent import RecentEventBuffer
from src.webhook_intake.verifier import SignatureVerifier

logger = logging.getLogger(__name__)

ACCEPTED_BODY = "[accepted]"


class IntakeState(Enum):
    RECEIVED = "RECEIVED"
    PARSED = "PARSED"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"
    RECORDED = "RECORDED"
    ACKNOWLEDGED = "ACKNOWLEDGED"
    PARSE_FAILED = "PARSE_FAILED"
    FAILED = "FAILED"  # unexpected internal error


_STATUS_CODES = {
    IntakeState.ACKNOWLEDGED: 200,
    IntakeState.REJECTED: 422,
    IntakeState.PARSE_FAILED: 422,
    IntakeState.FAILED: 500,
}


@dataclass(frozen=True)
class IntakeResult:
    state: IntakeState
    events: tuple[NotificationEvent, ...] = field(default=())
    detail: str = ""

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self.state]

    @property
    def body(self) -> str:
        return ACCEPTED_BODY if self.state is IntakeState.ACKNOWLEDGED else ""


class WebhookIntakePipeline:
    """End-to-end accept/reject decision for one inbound notification delivery.

    A delivery is all-or-nothing: the first classic item that fails HMAC
    verification rejects the whole batch and nothing from it is recorded.
    """

    def __init__(
        self,
        parser: NotificationParser,
        verifier: SignatureVerifier,
        buffer: RecentEventBuffer,
        metrics: IntakeMetrics | None = None,
        alerts: IntakeAlertManager | None = None,
    ):
        self.parser = parser
        self.verifier = verifier
        self.buffer = buffer
        self.metrics = metrics
        self.alerts = alerts

    def handle(self, raw_body: bytes | str) -> IntakeResult:
        try:
            batch = self.parser.parse(raw_body)
        except ParseError as e:
            logger.warning("Rejecting webhook delivery: %s", e)
            return self._rejected(IntakeResult(IntakeState.PARSE_FAILED, detail=str(e)))
        except Exception:
            logger.exception("Unexpected error while parsing webhook delivery")
            return self._rejected(IntakeResult(IntakeState.FAILED, detail="internal error"))

        try:
            self._verify(batch)
        except SignatureError as e:
            return self._rejected(IntakeResult(IntakeState.REJECTED, detail=str(e)))

        try:
            events = tuple(to_event(item) for item in batch.items)
            for event in events:
                self._log_event(event)
            self.buffer.record_many(events)
        except Exception:
            logger.exception("Unexpected error while processing verified webhook delivery")
            return self._rejected(IntakeResult(IntakeState.FAILED, detail="internal error"))

        if self.metrics is not None:
            self.metrics.record_accepted()
            if self.alerts is not None:
                self.alerts.check()
        return IntakeResult(IntakeState.ACKNOWLEDGED, events=events)

    def _verify(self, batch: NormalizedBatch) -> None:
        for index, item in enumerate(batch.items):
            if not item.requires_signature:
                continue
            if not self.verifier.verify(item.fields):
                logger.warning(
                    "Could not validate HMAC signature for webhook item %d (pspReference=%s, eventCode=%s)",
                    index,
                    item.fields.get("pspReference"),
                    item.fields.get("eventCode"),
                )
                raise SignatureError(f"item {index} failed HMAC verification")

    def _rejected(self, result: IntakeResult) -> IntakeResult:
        if self.metrics is not None:
            self.metrics.record_rejected()
            if self.alerts is not None:
                self.alerts.check()
        return result

    @staticmethod
    def _log_event(event: NotificationEvent) -> None:
        if event.source_shape is SourceShape.MANAGEMENT_EVENT:
            logger.info(
                "Recurring token event received. eventType=%s, merchantAccount=%s, "
                "shopperReference=%s, storedPaymentMethodId=%s, type=%s",
                event.event_code,
                event.merchant_account,
                event.shopper_reference,
                event.stored_payment_method_id,
                event.token_type,
            )
            return
        logger.info(
            "Webhook eventCode=%s, success=%s, merchantRef=%s, pspRef=%s, token=%s, storedPaymentMethodId=%s",
            event.event_code,
            event.success,
            event.merchant_reference,
            event.psp_reference,
            event.recurring_detail_reference,
            event.stored_payment_method_id,
        )
