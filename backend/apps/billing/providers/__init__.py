"""
Payment provider adapters.
"""

from config.settings.base import settings

from .base import (
    BillingEventType,
    BillingProvider,
    ProviderCustomer,
    ProviderSubscription,
    WebhookEvent,
)
from .creem_provider import CreemProvider
from .stripe_provider import StripeProvider

PROVIDER_NAMES = ("stripe", "creem")


def get_provider(name: str) -> BillingProvider:
    """
    Build a provider adapter from settings.

    Adapters are constructed per call; they hold only configuration.

    Raises:
        ValueError: If the provider name is unknown.
    """
    match name:
        case "stripe":
            return StripeProvider(
                secret_key=settings.STRIPE_SECRET_KEY,
                webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            )
        case "creem":
            return CreemProvider(
                api_key=settings.CREEM_API_KEY,
                webhook_secret=settings.CREEM_WEBHOOK_SECRET,
                test_mode=settings.CREEM_TEST_MODE,
            )
        case _:
            raise ValueError(f"Unknown billing provider: {name}")


__all__ = [
    "PROVIDER_NAMES",
    "BillingEventType",
    "BillingProvider",
    "CreemProvider",
    "ProviderCustomer",
    "ProviderSubscription",
    "StripeProvider",
    "WebhookEvent",
    "get_provider",
]
