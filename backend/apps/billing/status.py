"""
Provider subscription status -> internal SubscriptionStatus.
"""

from apps.organizations.models import Organization

SubscriptionStatus = Organization.SubscriptionStatus

# Stripe and Creem share most of their vocabulary.
# Anything not listed here is treated as inactive.
PROVIDER_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "active": SubscriptionStatus.ACTIVE,
    "canceled": SubscriptionStatus.CANCELED,
    "past_due": SubscriptionStatus.PAST_DUE,
    "trialing": SubscriptionStatus.TRIALING,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.INACTIVE,
    "incomplete_expired": SubscriptionStatus.INACTIVE,
    "paused": SubscriptionStatus.INACTIVE,
    # Creem: canceled at period end, access continues until then
    "scheduled_cancel": SubscriptionStatus.ACTIVE,
}


def map_subscription_status(provider_status: str | None) -> SubscriptionStatus:
    """Map a provider status string, failing safe to inactive."""
    if not provider_status:
        return SubscriptionStatus.INACTIVE
    return PROVIDER_STATUS_MAP.get(provider_status, SubscriptionStatus.INACTIVE)
