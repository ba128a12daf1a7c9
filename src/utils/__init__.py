from .amounts import amount_from_mapping, decode_amount
from .crypto import generate_signature, signing_string, verify_signature
from .factories import NotificationFactory

__all__ = [
    "amount_from_mapping", "decode_amount",
    "generate_signature", "signing_string", "verify_signature",
    "NotificationFactory",
]
