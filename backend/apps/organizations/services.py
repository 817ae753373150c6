"""
Organization persistence operations used by billing.

Writes are single UPDATE statements keyed by primary key so concurrent
webhook deliveries never need row locks.
"""

from uuid import UUID

from django.utils import timezone

from apps.organizations.models import Organization


def parse_organization_id(value: object) -> UUID | None:
    """Parse an opaque organization reference, returning None if malformed."""
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def get_organization(reference_id: object) -> Organization | None:
    """Look up an organization by its (string or UUID) ID."""
    organization_id = parse_organization_id(reference_id)
    if organization_id is None:
        return None
    return Organization.objects.filter(id=organization_id).first()


def update_organization_billing(
    organization_id: UUID,
    *,
    subscription_id: str | None,
    status: str,
    seats: int | None = None,
    customer_id: str | None = None,
) -> bool:
    """
    Overwrite an organization's billing fields in one atomic statement.

    subscription_id and status are always written (None clears the
    subscription). seats and customer_id are left untouched when None.

    Returns:
        True if a row was updated, False if no organization has that ID.
    """
    fields: dict = {
        "billing_subscription_id": subscription_id,
        "subscription_status": status,
        "updated_at": timezone.now(),
    }
    if seats is not None:
        fields["seats"] = max(seats, 1)
    if customer_id:
        fields["billing_customer_id"] = customer_id

    updated = Organization.objects.filter(id=organization_id).update(**fields)
    return updated > 0


def set_billing_customer(organization: Organization, customer_id: str) -> None:
    """Record the provider customer created for an organization."""
    organization.billing_customer_id = customer_id
    organization.save(update_fields=["billing_customer_id", "updated_at"])


def set_seats(organization: Organization, seats: int) -> None:
    """Persist a seat count after the provider accepted the change."""
    Organization.objects.filter(id=organization.id).update(
        seats=max(seats, 1), updated_at=timezone.now()
    )
    organization.refresh_from_db(fields=["seats", "updated_at"])
