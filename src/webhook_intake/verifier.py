from collections.abc import Mapping

from src.errors import ConfigurationError
from src.utils.crypto import decode_secret, generate_signature, verify_signature


class SignatureVerifier:
    """Signs and verifies classic notification items using HMAC-SHA256.

    The hex key is decoded once here, so a bad key fails at startup with
    ConfigurationError instead of rejecting every delivery.
    """

    def __init__(self, secret_hex: str):
        try:
            decode_secret(secret_hex)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        self.secret_hex = secret_hex

    def sign(self, item: Mapping) -> str:
        return generate_signature(item, self.secret_hex)

    def verify(self, item: Mapping) -> bool:
        return verify_signature(item, self.secret_hex)
