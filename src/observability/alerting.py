import logging
import threading

from src.observability.metrics import IntakeMetrics

logger = logging.getLogger(__name__)


def log_alert(alert: dict) -> None:
    logger.warning(alert["message"])


class IntakeAlertManager:
    """Fires once when the webhook rejection rate crosses a threshold.

    A burst of rejections usually means the processor signs with a key this
    service does not have (rotated or mistyped HMAC key).
    """

    def __init__(
        self,
        metrics: IntakeMetrics,
        threshold: float = 0.10,
        callback=log_alert,
    ):
        self.metrics = metrics
        self.threshold = threshold
        self.callback = callback
        self._fired = False
        self._alerts: list[dict] = []
        self._lock = threading.Lock()

    def check(self) -> dict | None:
        """Check the rejection rate. Returns the alert dict when one fires."""
        accepted, rejected = self.metrics.counts()
        total = accepted + rejected
        if total == 0:
            return None

        rate = rejected / total
        with self._lock:
            if rate <= self.threshold:
                # back below threshold, re-arm
                self._fired = False
                return None
            if self._fired:
                return None
            self._fired = True

        alert = {
            "type": "webhook_rejection_rate",
            "rejection_rate": rate,
            "threshold": self.threshold,
            "total_deliveries": total,
            "rejected_deliveries": rejected,
            "message": (
                f"Webhook rejection rate {rate:.1%} exceeds "
                f"threshold {self.threshold:.1%} "
                f"({rejected}/{total} deliveries rejected)"
            ),
        }
        with self._lock:
            self._alerts.append(alert)
        if self.callback:
            self.callback(alert)
        return alert

    def get_alerts(self) -> list[dict]:
        with self._lock:
            return list(self._alerts)
