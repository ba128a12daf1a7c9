from .client import CheckoutClient
from .orchestrator import PaymentDefaults, PaymentLifecycleOrchestrator, ShopperContext

__all__ = [
    "CheckoutClient",
    "PaymentDefaults",
    "PaymentLifecycleOrchestrator",
    "ShopperContext",
]
