"""
Tests for organizations app models.
"""

import uuid
from datetime import timedelta

import pytest
from django.db import IntegrityError
from django.utils import timezone

from apps.organizations.models import Organization
from tests.organizations.factories import OrganizationFactory


@pytest.mark.django_db
class TestOrganizationModel:
    """Tests for Organization model."""

    def test_create_organization_defaults(self) -> None:
        """Should default to an inactive, single-seat organization without billing IDs."""
        org = Organization.objects.create(name="Test Org", slug="test-org")

        assert isinstance(org.id, uuid.UUID)
        assert org.subscription_status == Organization.SubscriptionStatus.INACTIVE
        assert org.seats == 1
        assert org.billing_customer_id is None
        assert org.billing_subscription_id is None

    def test_str_includes_status(self) -> None:
        org = OrganizationFactory.create(name="Acme Corp", subscription_status="active")

        assert str(org) == "Acme Corp (active)"

    def test_slug_unique(self) -> None:
        """Should enforce unique slug."""
        OrganizationFactory.create(slug="unique-slug")

        with pytest.raises(IntegrityError):
            OrganizationFactory.create(slug="unique-slug")

    def test_seats_must_be_positive(self) -> None:
        """Should reject a seat count below one."""
        with pytest.raises(IntegrityError):
            OrganizationFactory.create(seats=0)

    def test_timestamps_auto_set(self) -> None:
        """Should auto-set created_at and updated_at."""
        org = OrganizationFactory.create()

        assert org.created_at is not None
        assert org.updated_at is not None

    def test_ordering_by_created_at_desc(self) -> None:
        """Should order organizations by created_at descending."""
        older = OrganizationFactory.create()
        newer = OrganizationFactory.create()
        Organization.objects.filter(id=older.id).update(
            created_at=timezone.now() - timedelta(days=1)
        )

        assert list(Organization.objects.all()) == [newer, older]


@pytest.mark.django_db
class TestHasActiveSubscription:
    """Tests for the has_active_subscription property."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            ("active", True),
            ("trialing", True),
            ("past_due", False),
            ("canceled", False),
            ("inactive", False),
        ],
    )
    def test_paid_access_by_status(self, status: str, expected: bool) -> None:
        org = OrganizationFactory.create(subscription_status=status)

        assert org.has_active_subscription is expected
