"""
Billing services - checkout, portal and seat management.

Thin orchestration over the provider adapters. External calls must NOT be
inside database transactions.
"""

from apps.billing.exceptions import BillingAccountMissing
from apps.billing.providers import BillingProvider
from apps.core.logging import get_logger
from apps.organizations.models import Organization
from apps.organizations.services import set_billing_customer, set_seats
from config.settings.base import settings

logger = get_logger(__name__)


def default_success_url() -> str:
    return f"{settings.APP_URL}/billing?success=true"


def default_cancel_url() -> str:
    return f"{settings.APP_URL}/billing?canceled=true"


def default_return_url() -> str:
    return f"{settings.APP_URL}/billing"


def create_checkout_session(
    provider: BillingProvider,
    organization: Organization,
    *,
    plan_id: str,
    quantity: int | None = None,
    customer_email: str | None = None,
    success_url: str | None = None,
    cancel_url: str | None = None,
    discount_code: str | None = None,
) -> str:
    """
    Create a hosted checkout for a new subscription.

    Creates the provider customer first when the provider requires one.
    The organization ID travels in checkout metadata so webhooks can find
    the organization again.

    Returns the checkout URL.
    """
    if not organization.billing_customer_id:
        customer_id = provider.create_customer(organization, customer_email)
        if customer_id:
            set_billing_customer(organization, customer_id)

    url = provider.create_checkout_session(
        organization,
        plan_id=plan_id,
        quantity=quantity or organization.seats,
        success_url=success_url or default_success_url(),
        cancel_url=cancel_url or default_cancel_url(),
        customer_email=customer_email,
        discount_code=discount_code,
    )
    logger.info("checkout_session_created", provider=provider.name, organization_id=organization.id)
    return url


def create_portal_session(
    provider: BillingProvider,
    organization: Organization,
    return_url: str | None = None,
) -> str:
    """
    Create a self-service billing portal session.

    Raises:
        BillingAccountMissing: If the organization has no provider customer.
    """
    if not organization.billing_customer_id:
        raise BillingAccountMissing("No billing account found")

    return provider.create_portal_session(
        organization.billing_customer_id,
        return_url or default_return_url(),
    )


def update_seats(provider: BillingProvider, organization: Organization, seats: int) -> int:
    """
    Change the subscribed seat count.

    The provider is updated first; the local record follows only on success.

    Raises:
        BillingAccountMissing: If the organization has no subscription.
    """
    if not organization.billing_subscription_id:
        raise BillingAccountMissing("No active subscription")

    provider.update_seats(organization.billing_subscription_id, seats)
    set_seats(organization, seats)

    logger.info("seats_updated", organization_id=organization.id, seats=organization.seats)
    return organization.seats
