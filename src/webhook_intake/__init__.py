from .parser import NotificationParser
from .pipeline import IntakeResult, IntakeState, WebhookIntakePipeline
from .recent import RecentEventBuffer
from .verifier import SignatureVerifier

__all__ = [
    "NotificationParser",
    "IntakeResult",
    "IntakeState",
    "WebhookIntakePipeline",
    "RecentEventBuffer",
    "SignatureVerifier",
]
