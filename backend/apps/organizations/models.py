"""
Organizations models - the tenant record billing state is attached to.
"""

import uuid

from django.db import models

from apps.core.models import TimestampedModel


class Organization(TimestampedModel):
    """
    A tenant that subscribes to a paid plan.

    Billing fields are written only by webhook processing; the payment
    provider is the source of truth for subscription state.
    """

    class SubscriptionStatus(models.TextChoices):
        INACTIVE = "inactive", "Inactive"
        ACTIVE = "active", "Active"
        CANCELED = "canceled", "Canceled"
        PAST_DUE = "past_due", "Past Due"
        TRIALING = "trialing", "Trialing"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    slug = models.SlugField(
        max_length=255,
        unique=True,
        help_text="URL-safe identifier, e.g. 'acme-corp'",
    )

    # Populated once a payment provider customer exists
    billing_customer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        db_index=True,
        help_text="Provider customer ID, e.g. 'cus_xxx'",
    )
    billing_subscription_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Provider subscription ID, e.g. 'sub_xxx'",
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SubscriptionStatus.choices,
        default=SubscriptionStatus.INACTIVE,
        db_index=True,
    )
    seats = models.PositiveIntegerField(default=1)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(seats__gte=1),
                name="organization_seats_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.subscription_status})"

    @property
    def has_active_subscription(self) -> bool:
        """Check if the organization can use paid features."""
        return self.subscription_status in (
            self.SubscriptionStatus.ACTIVE,
            self.SubscriptionStatus.TRIALING,
        )
