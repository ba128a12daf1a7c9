import threading
from collections import deque
from collections.abc import Iterable

from src.models.notification import NotificationEvent

RECENT_EVENT_CAPACITY = 25


class RecentEventBuffer:
    """Thread-safe, newest-first ring of the most recent notification events.

    Audit visibility only: nothing here survives a restart.
    """

    def __init__(self, capacity: int = RECENT_EVENT_CAPACITY):
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._events: deque[NotificationEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._events.maxlen

    def record(self, event: NotificationEvent) -> None:
        with self._lock:
            self._events.appendleft(event)

    def record_many(self, events: Iterable[NotificationEvent]) -> None:
        """Record a whole delivery under one lock, in delivery order."""
        events = list(events)
        with self._lock:
            for event in events:
                self._events.appendleft(event)

    def snapshot(self) -> list[NotificationEvent]:
        with self._lock:
            return list(self._events)

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
