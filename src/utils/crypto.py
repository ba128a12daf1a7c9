import base64
import binascii
import hashlib
import hmac
from collections.abc import Mapping

# Processor-defined order of the classic notification HMAC signing string.
SIGNED_FIELDS = (
    "pspReference",
    "originalReference",
    "merchantAccountCode",
    "merchantReference",
    "amount.value",
    "amount.currency",
    "eventCode",
    "success",
)

REQUIRED_FIELDS = ("pspReference", "merchantAccountCode", "eventCode", "success")

SIGNATURE_KEY = "hmacSignature"


class MalformedItem(ValueError):
    """The item cannot produce a canonical signing string."""


def decode_secret(secret_hex: str) -> bytes:
    """Decode a hex HMAC key. Raises ValueError when it is empty or not hex."""
    if not isinstance(secret_hex, str) or not secret_hex.strip():
        raise ValueError("HMAC key is empty")
    try:
        return binascii.unhexlify(secret_hex.strip())
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"HMAC key is not hex: {e}") from None


def signing_string(item: Mapping) -> str:
    """Build the ``:``-joined canonical string for a NotificationRequestItem."""
    if not isinstance(item, Mapping):
        raise MalformedItem("item is not an object")
    for name in REQUIRED_FIELDS:
        if item.get(name) is None:
            raise MalformedItem(f"missing {name}")

    amount = item.get("amount")
    if amount is None:
        amount = {}
    if not isinstance(amount, Mapping):
        raise MalformedItem("amount is not an object")

    values = []
    for name in SIGNED_FIELDS:
        if name.startswith("amount."):
            raw = amount.get(name.split(".", 1)[1])
        else:
            raw = item.get(name)
        values.append(_canonical(name, raw))
    return ":".join(values)


def _canonical(name: str, raw) -> str:
    if raw is None:
        return ""
    if name == "success":
        if isinstance(raw, bool):
            return "true" if raw else "false"
        if isinstance(raw, str) and raw.lower() in ("true", "false"):
            return raw.lower()
        raise MalformedItem(f"success is {raw!r}")
    if isinstance(raw, bool) or isinstance(raw, (Mapping, list)):
        raise MalformedItem(f"{name} is {raw!r}")
    return str(raw)


def generate_signature(item: Mapping, secret_hex: str) -> str:
    """Base64 HMAC-SHA256 of the item's signing string, keyed with the hex secret."""
    key = decode_secret(secret_hex)
    digest = hmac.new(key, signing_string(item).encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(item: Mapping, secret_hex: str, signature: str | None = None) -> bool:
    """Check an item's HMAC signature in constant time.

    The signature defaults to ``additionalData["hmacSignature"]``. A missing
    signature, a malformed item or an undecodable secret all verify as False.
    """
    if signature is None:
        signature = _embedded_signature(item)
    if not isinstance(signature, str) or not signature:
        return False
    try:
        expected = generate_signature(item, secret_hex)
    except ValueError:
        return False
    return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))


def _embedded_signature(item) -> str | None:
    if not isinstance(item, Mapping):
        return None
    additional = item.get("additionalData")
    if not isinstance(additional, Mapping):
        return None
    return additional.get(SIGNATURE_KEY)
