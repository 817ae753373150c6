"""
Provider-neutral billing types and the adapter interface.

Each payment provider adapter turns its own webhook envelopes and API
objects into these types so the router and synchronizer never see
provider-specific field names.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from apps.organizations.models import Organization

# Metadata keys that may carry the organization reference, in priority order
ORGANIZATION_METADATA_KEYS = ("organization_id", "reference_id", "referenceId")


class BillingEventType(StrEnum):
    """Normalized webhook event kinds the router acts on."""

    CHECKOUT_COMPLETED = "checkout_completed"
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_DELETED = "subscription_deleted"
    PAYMENT_FAILED = "payment_failed"


@dataclass(frozen=True)
class WebhookEvent:
    """A verified webhook event. Never persisted."""

    id: str
    type: str
    kind: BillingEventType | None
    data: dict[str, Any]


@dataclass(frozen=True)
class ProviderSubscription:
    """Subscription snapshot as reported by the provider."""

    id: str
    status: str
    customer_id: str | None = None
    customer_email: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    quantity: int = 1
    price_id: str | None = None
    current_period_end: datetime | None = None

    @property
    def organization_reference(self) -> str | None:
        """The correlation key set at checkout time, if any."""
        for key in ORGANIZATION_METADATA_KEYS:
            value = self.metadata.get(key)
            if value:
                return str(value)
        return None

    def with_fallback_metadata(self, metadata: dict[str, Any]) -> "ProviderSubscription":
        """Fill missing metadata keys from another object (e.g. the checkout)."""
        return replace(self, metadata={**metadata, **self.metadata})


@dataclass(frozen=True)
class ProviderCustomer:
    """Customer record as reported by the provider."""

    id: str
    email: str | None


class BillingProvider(ABC):
    """
    Adapter over a payment provider SDK or API.

    Implementations must verify signatures over the raw request body and
    raise InvalidSignature / MalformedPayload instead of returning an event.
    API failures surface as ProviderError.
    """

    name: str
    signature_header: str

    def __init__(self, webhook_secret: str):
        self.webhook_secret = webhook_secret

    @abstractmethod
    def verify(self, payload: bytes, signature: str) -> WebhookEvent:
        """Verify a webhook delivery and parse it into an event."""

    @abstractmethod
    def subscription_from_event(self, event: WebhookEvent) -> ProviderSubscription:
        """Read the subscription embedded in a subscription.* event."""

    @abstractmethod
    def checkout_subscription_ref(self, event: WebhookEvent) -> str | None:
        """Subscription ID referenced by a completed checkout, if any."""

    @abstractmethod
    def invoice_subscription_ref(self, event: WebhookEvent) -> str | None:
        """Subscription ID referenced by a failed invoice, if any."""

    @abstractmethod
    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Fetch the current subscription from the provider."""

    @abstractmethod
    def retrieve_customer(self, customer_id: str) -> ProviderCustomer | None:
        """Fetch a customer, or None if it no longer exists."""

    @abstractmethod
    def create_customer(self, organization: "Organization", email: str | None) -> str | None:
        """Create a provider customer, or return None if checkout creates one."""

    @abstractmethod
    def create_checkout_session(
        self,
        organization: "Organization",
        *,
        plan_id: str,
        quantity: int,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
        discount_code: str | None = None,
    ) -> str:
        """Create a hosted checkout and return its URL."""

    @abstractmethod
    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        """Create a self-service billing portal session and return its URL."""

    @abstractmethod
    def update_seats(self, subscription_id: str, seats: int) -> None:
        """Change the subscribed quantity with proration."""

    def checkout_metadata(self, event: WebhookEvent) -> dict[str, Any]:
        """Metadata attached to a checkout object."""
        return dict(event.data.get("metadata") or {})
