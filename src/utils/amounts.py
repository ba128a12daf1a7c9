import logging
import re
from collections.abc import Mapping

from src.errors import ValidationError, ValidationReason
from src.models.money import Money

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "EUR"

_MAX_MINOR_UNITS = 2**63 - 1

# ASCII digits only; int() alone also takes "1_000" and non-ASCII digits
_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


def decode_amount(
    raw_value,
    raw_currency=None,
    fallback_minor_units: int | None = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> Money:
    """Turn a loosely-typed amount into Money.

    ``raw_value`` may be an int, an integral float or a numeric string. A
    missing (or blank) value falls back to ``fallback_minor_units``; with no
    fallback the amount is missing. Raises ValidationError, never returns
    a partial result.
    """
    currency = _decode_currency(raw_currency, default_currency)
    value = _decode_value(raw_value)
    if value is None:
        value = fallback_minor_units
    if value is None:
        logger.warning("Amount value missing for request")
        raise ValidationError(ValidationReason.AMOUNT_MISSING)
    if value < 0:
        raise ValidationError(ValidationReason.AMOUNT_NEGATIVE, f"negative amount {value}")
    return Money(currency=currency, value=value)


def amount_from_mapping(
    raw_amount,
    fallback_minor_units: int | None = None,
    default_currency: str = DEFAULT_CURRENCY,
) -> Money:
    """Decode an ``{"value": ..., "currency": ...}`` object from a request body."""
    if not isinstance(raw_amount, Mapping):
        raise ValidationError(ValidationReason.AMOUNT_MISSING, "amount object missing")
    return decode_amount(
        raw_amount.get("value"),
        raw_amount.get("currency"),
        fallback_minor_units,
        default_currency,
    )


def _decode_currency(raw_currency, default_currency: str) -> str:
    if raw_currency is None:
        return default_currency
    if not isinstance(raw_currency, str):
        raise ValidationError(ValidationReason.CURRENCY_INVALID, f"currency {raw_currency!r}")
    currency = raw_currency.strip().upper()
    if len(currency) != 3 or not currency.isalpha() or not currency.isascii():
        raise ValidationError(ValidationReason.CURRENCY_INVALID, f"currency {raw_currency!r}")
    return currency


def _decode_value(raw_value) -> int | None:
    if raw_value is None:
        return None
    # bool is an int subclass; True is not an amount
    if isinstance(raw_value, bool):
        raise ValidationError(ValidationReason.AMOUNT_UNPARSEABLE, f"amount {raw_value!r}")
    if isinstance(raw_value, int):
        value = raw_value
    elif isinstance(raw_value, float):
        if not raw_value.is_integer():
            raise ValidationError(ValidationReason.AMOUNT_UNPARSEABLE, f"amount {raw_value!r}")
        value = int(raw_value)
    elif isinstance(raw_value, str):
        text = raw_value.strip()
        if not text:
            return None
        if not _INTEGER_TEXT.fullmatch(text):
            logger.warning("Unable to parse amount value %s", raw_value)
            raise ValidationError(
                ValidationReason.AMOUNT_UNPARSEABLE, f"amount {raw_value!r}"
            )
        value = int(text)
    else:
        raise ValidationError(ValidationReason.AMOUNT_UNPARSEABLE, f"amount {raw_value!r}")

    if abs(value) > _MAX_MINOR_UNITS:
        raise ValidationError(ValidationReason.AMOUNT_UNPARSEABLE, f"amount {raw_value!r} out of range")
    return value
