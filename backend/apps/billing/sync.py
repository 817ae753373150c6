"""
Subscription synchronizer.

Writes provider subscription state onto the organization record. Every
write is a pure overwrite of the billing fields, so replaying an event is
harmless and out-of-order deliveries resolve as last-write-wins.
"""

from dataclasses import dataclass
from uuid import UUID

from django.db import DatabaseError

from apps.billing.exceptions import PersistenceFailure, UnresolvedOrganization
from apps.billing.providers.base import ProviderSubscription
from apps.billing.status import SubscriptionStatus, map_subscription_status
from apps.core.logging import get_logger
from apps.organizations.services import parse_organization_id, update_organization_billing

logger = get_logger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """Acknowledgement of a persisted billing update."""

    organization_id: UUID
    status: SubscriptionStatus
    subscription_id: str | None


def sync_subscription(subscription: ProviderSubscription) -> SyncResult | None:
    """
    Persist the subscription's mapped status, ID and seat count.

    Returns None (no-op) when the subscription cannot be linked to an
    organization.
    """
    return _apply(
        subscription,
        status=map_subscription_status(subscription.status),
        subscription_id=subscription.id,
        seats=subscription.quantity,
    )


def sync_subscription_deleted(subscription: ProviderSubscription) -> SyncResult | None:
    """Mark the organization canceled and detach the subscription."""
    return _apply(
        subscription,
        status=SubscriptionStatus.CANCELED,
        subscription_id=None,
        seats=None,
    )


def sync_payment_failed(subscription: ProviderSubscription) -> SyncResult | None:
    """
    Mark the organization past due.

    A failed invoice overrides whatever status the subscription reports.
    """
    return _apply(
        subscription,
        status=SubscriptionStatus.PAST_DUE,
        subscription_id=subscription.id,
        seats=subscription.quantity,
    )


def _resolve_organization_id(subscription: ProviderSubscription) -> UUID:
    reference = subscription.organization_reference
    if reference is None:
        raise UnresolvedOrganization("Subscription has no organization reference in metadata")

    organization_id = parse_organization_id(reference)
    if organization_id is None:
        raise UnresolvedOrganization(f"Malformed organization reference {reference!r}")
    return organization_id


def _apply(
    subscription: ProviderSubscription,
    *,
    status: SubscriptionStatus,
    subscription_id: str | None,
    seats: int | None,
) -> SyncResult | None:
    try:
        organization_id = _resolve_organization_id(subscription)
    except UnresolvedOrganization as e:
        logger.info(
            "subscription_sync_skipped",
            subscription_id=subscription.id,
            reason=str(e),
        )
        return None

    try:
        updated = update_organization_billing(
            organization_id,
            subscription_id=subscription_id,
            status=status,
            seats=seats,
            customer_id=subscription.customer_id,
        )
    except DatabaseError as e:
        raise PersistenceFailure(
            f"Failed to update billing for organization {organization_id}"
        ) from e

    if not updated:
        logger.warning(
            "subscription_sync_organization_not_found",
            organization_id=organization_id,
            subscription_id=subscription.id,
        )
        return None

    logger.info(
        "subscription_synced",
        organization_id=organization_id,
        subscription_id=subscription.id,
        status=status.value,
        seats=seats,
    )
    return SyncResult(
        organization_id=organization_id,
        status=status,
        subscription_id=subscription_id,
    )
