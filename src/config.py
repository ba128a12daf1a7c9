"""Environment-driven settings for the merchant integration service.

Loaded once by the process entry point; nothing here is read at import time.
"""

import logging

from pydantic_settings import BaseSettings, SettingsConfigDict

from src.payments.client import DEFAULT_BASE_URL
from src.payments.orchestrator import PaymentDefaults


class Settings(BaseSettings):
    adyen_api_key: str
    adyen_merchant_account: str
    adyen_hmac_key: str
    checkout_base_url: str = DEFAULT_BASE_URL
    request_timeout_seconds: float = 30

    # single fixed shopper identity; no multi-tenant key management
    shopper_reference: str = "KevinOliver"

    default_currency: str = "EUR"
    payment_amount_minor: int = 9998
    preauthorisation_amount_minor: int = 4999
    subscription_amount_minor: int = 500
    # JSON object, e.g. {"city": "Amsterdam", "country": "NL", ...}
    billing_address: dict | None = None

    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    def payment_defaults(self) -> PaymentDefaults:
        return PaymentDefaults(
            currency=self.default_currency,
            payment_amount_minor=self.payment_amount_minor,
            preauthorisation_amount_minor=self.preauthorisation_amount_minor,
            subscription_amount_minor=self.subscription_amount_minor,
            billing_address=self.billing_address,
        )


def load_settings() -> Settings:
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once per process."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
