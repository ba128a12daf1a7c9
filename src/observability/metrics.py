import threading
import time


class IntakeMetrics:
    """Rolling-window counts of accepted and rejected webhook deliveries."""

    def __init__(self, window_seconds: float = 300):
        self._window_seconds = window_seconds
        self._accepted: list[float] = []  # timestamps
        self._rejected: list[float] = []
        self._lock = threading.Lock()

    def record_accepted(self) -> None:
        with self._lock:
            self._accepted.append(time.monotonic())

    def record_rejected(self) -> None:
        with self._lock:
            self._rejected.append(time.monotonic())

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_seconds
        self._accepted = [t for t in self._accepted if t >= cutoff]
        self._rejected = [t for t in self._rejected if t >= cutoff]

    def counts(self) -> tuple[int, int]:
        """(accepted, rejected) in the current window."""
        with self._lock:
            self._prune(time.monotonic())
            return len(self._accepted), len(self._rejected)

    def rejection_rate(self) -> float:
        """Share of deliveries rejected in the current window (0.0 to 1.0)."""
        accepted, rejected = self.counts()
        total = accepted + rejected
        if total == 0:
            return 0.0
        return rejected / total

    def snapshot(self) -> dict:
        accepted, rejected = self.counts()
        total = accepted + rejected
        return {
            "windowSeconds": self._window_seconds,
            "accepted": accepted,
            "rejected": rejected,
            "rejectionRate": rejected / total if total else 0.0,
        }
