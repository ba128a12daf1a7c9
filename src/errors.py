from enum import Enum


class ValidationReason(Enum):
    AMOUNT_MISSING = "AmountMissing"
    AMOUNT_UNPARSEABLE = "AmountUnparseable"
    AMOUNT_NEGATIVE = "AmountNegative"
    CURRENCY_INVALID = "CurrencyInvalid"
    ID_MISSING = "IdMissing"
    PSP_REFERENCE_MISSING = "PspReferenceMissing"
    PAYMENT_METHOD_MISSING = "PaymentMethodMissing"
    INDUSTRY_USAGE_INVALID = "IndustryUsageInvalid"
    BODY_INVALID = "BodyInvalid"


class IntegrationError(Exception):
    """Base class for every error raised by the integration core."""


class ValidationError(IntegrationError, ValueError):
    """Caller input was missing or malformed. Raised before any processor call."""

    def __init__(self, reason: ValidationReason, message: str = ""):
        self.reason = reason
        super().__init__(message or reason.value)


class SignatureError(IntegrationError):
    """A notification item failed HMAC verification or carried no signature."""


class ParseError(IntegrationError):
    """An inbound notification body matched neither known payload shape."""

    def __init__(self, reason: str = "UnrecognizedPayload", message: str = ""):
        self.reason = reason
        super().__init__(message or reason)


class ProcessorError(IntegrationError):
    """The payment processor answered with a structured failure.

    The status code and body are relayed to the caller unchanged.
    """

    def __init__(self, status_code: int, body: dict | None = None, error_code: str | None = None):
        self.status_code = status_code
        self.body = body or {}
        self.error_code = error_code
        super().__init__(f"processor returned {status_code}: {error_code or self.body.get('message', '')}")


class ConfigurationError(IntegrationError):
    """Injected configuration is unusable (e.g. an HMAC key that is not hex)."""
