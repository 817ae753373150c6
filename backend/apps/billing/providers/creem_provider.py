"""
Creem adapter.

Creem signs webhooks with an HMAC-SHA256 hex digest of the raw body and
exposes a small REST API authenticated with an x-api-key header.
"""

import hashlib
import hmac
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx
from django.utils.dateparse import parse_datetime

from apps.billing.exceptions import InvalidSignature, MalformedPayload, ProviderError

from .base import (
    BillingEventType,
    BillingProvider,
    ProviderCustomer,
    ProviderSubscription,
    WebhookEvent,
)

if TYPE_CHECKING:
    from apps.organizations.models import Organization

logger = logging.getLogger(__name__)

CREEM_API_URL = "https://api.creem.io"
CREEM_TEST_API_URL = "https://test-api.creem.io"

# Request timeout in seconds
CREEM_TIMEOUT = 30

CREEM_EVENT_TYPES: dict[str, BillingEventType] = {
    "checkout.completed": BillingEventType.CHECKOUT_COMPLETED,
    "subscription.active": BillingEventType.SUBSCRIPTION_CREATED,
    "subscription.update": BillingEventType.SUBSCRIPTION_UPDATED,
    "subscription.trialing": BillingEventType.SUBSCRIPTION_UPDATED,
    "subscription.paused": BillingEventType.SUBSCRIPTION_UPDATED,
    "subscription.expired": BillingEventType.SUBSCRIPTION_UPDATED,
    "subscription.canceled": BillingEventType.SUBSCRIPTION_DELETED,
}


def compute_signature(payload: bytes, secret: str) -> str:
    """HMAC-SHA256 hex digest Creem sends in the creem-signature header."""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def _ref_id(ref: Any) -> str | None:
    """Creem references are either an ID string or an embedded object."""
    if not ref:
        return None
    if isinstance(ref, dict):
        return ref.get("id")
    return str(ref)


def parse_subscription(data: dict[str, Any]) -> ProviderSubscription:
    """Build a ProviderSubscription from a Creem subscription object."""
    if not isinstance(data, dict) or not isinstance(data.get("id"), str) or not data["id"]:
        raise MalformedPayload("Creem subscription has no id")
    if not isinstance(data.get("metadata") or {}, dict):
        raise MalformedPayload("Creem subscription metadata is not an object")

    customer = data.get("customer")
    items = data.get("items") or []
    first_item = items[0] if items and isinstance(items[0], dict) else {}

    period_end_raw = data.get("current_period_end_date")
    try:
        period_end = parse_datetime(period_end_raw) if isinstance(period_end_raw, str) else None
    except ValueError as e:
        raise MalformedPayload(f"Invalid current_period_end_date {period_end_raw!r}") from e

    return ProviderSubscription(
        id=data["id"],
        status=data.get("status") or "",
        customer_id=_ref_id(customer),
        customer_email=customer.get("email") if isinstance(customer, dict) else None,
        metadata=dict(data.get("metadata") or {}),
        quantity=first_item.get("units") or 1,
        price_id=_ref_id(data.get("product")),
        current_period_end=period_end,
    )


class CreemProvider(BillingProvider):
    """Creem adapter."""

    name = "creem"
    signature_header = "creem-signature"

    def __init__(self, api_key: str, webhook_secret: str, test_mode: bool = True):
        super().__init__(webhook_secret)
        self.api_key = api_key
        self.base_url = CREEM_TEST_API_URL if test_mode else CREEM_API_URL

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            with httpx.Client(
                base_url=self.base_url,
                headers={"x-api-key": self.api_key},
                timeout=CREEM_TIMEOUT,
            ) as client:
                response = client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("Creem %s %s failed: %s", method, path, e)
            raise ProviderError(f"Creem request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise ProviderError(f"Creem {method} {path} returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ProviderError(f"Creem {method} {path} returned a non-JSON body") from e
        if not isinstance(data, dict):
            raise ProviderError(f"Creem {method} {path} returned an unexpected body")
        return data

    def verify(self, payload: bytes, signature: str) -> WebhookEvent:
        if not signature:
            raise InvalidSignature("Missing creem-signature header")

        expected = compute_signature(payload, self.webhook_secret)
        if not hmac.compare_digest(expected, signature):
            raise InvalidSignature("Creem signature mismatch")

        try:
            envelope = json.loads(payload)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedPayload(str(e)) from e
        if not isinstance(envelope, dict) or not isinstance(envelope.get("object"), dict):
            raise MalformedPayload("Creem event has no object")

        event_type = envelope.get("eventType", "")
        return WebhookEvent(
            id=envelope.get("id", ""),
            type=event_type,
            kind=CREEM_EVENT_TYPES.get(event_type),
            data=envelope["object"],
        )

    def subscription_from_event(self, event: WebhookEvent) -> ProviderSubscription:
        return parse_subscription(event.data)

    def checkout_subscription_ref(self, event: WebhookEvent) -> str | None:
        return _ref_id(event.data.get("subscription"))

    def invoice_subscription_ref(self, event: WebhookEvent) -> str | None:
        # Creem reports failed renewals through subscription status changes
        return None

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        data = self._request("GET", "/v1/subscriptions", params={"subscription_id": subscription_id})
        try:
            return parse_subscription(data)
        except MalformedPayload as e:
            # A bad API response is a provider fault, not a bad delivery
            raise ProviderError(str(e)) from e

    def retrieve_customer(self, customer_id: str) -> ProviderCustomer | None:
        data = self._request("GET", "/v1/customers", params={"customer_id": customer_id})
        if not data.get("id"):
            return None
        return ProviderCustomer(id=data["id"], email=data.get("email"))

    def create_customer(self, organization: "Organization", email: str | None) -> str | None:
        # Creem creates the customer during checkout
        return None

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
        body: dict[str, Any] = {
            "product_id": plan_id,
            "units": quantity,
            "success_url": success_url,
            "metadata": {
                "referenceId": str(organization.id),
                "organization_id": str(organization.id),
            },
        }
        if customer_email:
            body["customer"] = {"email": customer_email}
        if discount_code:
            body["discount_code"] = discount_code

        data = self._request("POST", "/v1/checkouts", json=body)
        checkout_url = data.get("checkout_url")
        if not checkout_url:
            raise ProviderError("Checkout URL not returned from Creem")

        logger.info("Created Creem checkout %s for org %s", data.get("id"), organization.id)
        return checkout_url

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        data = self._request("POST", "/v1/customers/billing", json={"customer_id": customer_id})
        portal_url = data.get("customer_portal_link")
        if not portal_url:
            raise ProviderError("Portal link not returned from Creem")
        return portal_url

    def update_seats(self, subscription_id: str, seats: int) -> None:
        subscription = self._request(
            "GET", "/v1/subscriptions", params={"subscription_id": subscription_id}
        )
        items = subscription.get("items") or []
        if not items:
            raise ProviderError("Subscription item not found")

        self._request(
            "POST",
            f"/v1/subscriptions/{subscription_id}",
            json={
                "items": [{"id": items[0]["id"], "units": seats}],
                "update_behavior": "proration-charge-immediately",
            },
        )
        logger.info("Updated Creem subscription %s to %d seats", subscription_id, seats)
