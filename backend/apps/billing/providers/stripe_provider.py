"""
Stripe adapter.

All Stripe API calls are isolated here for testability. The API version and
retry policy are set on the stripe module once, at import. The secret key is
passed per call and never stored on the module.
"""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

import stripe

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

# API version where current_period_end lives on subscription items
STRIPE_API_VERSION = "2025-06-30.basil"

# Retries are safe due to automatic idempotency key generation.
STRIPE_MAX_NETWORK_RETRIES = 2

stripe.api_version = STRIPE_API_VERSION
stripe.max_network_retries = STRIPE_MAX_NETWORK_RETRIES

STRIPE_EVENT_TYPES: dict[str, BillingEventType] = {
    "checkout.session.completed": BillingEventType.CHECKOUT_COMPLETED,
    "customer.subscription.created": BillingEventType.SUBSCRIPTION_CREATED,
    "customer.subscription.updated": BillingEventType.SUBSCRIPTION_UPDATED,
    "customer.subscription.deleted": BillingEventType.SUBSCRIPTION_DELETED,
    "invoice.payment_failed": BillingEventType.PAYMENT_FAILED,
}


def _as_dict(obj: Any) -> dict[str, Any]:
    """Convert a StripeObject (or plain dict) into a dict."""
    if obj is None:
        return {}
    if isinstance(obj, dict):
        return obj
    for attr in ("to_dict_recursive", "to_dict"):
        converter = getattr(obj, attr, None)
        if callable(converter):
            return converter()
    return dict(obj)


def _ref_id(ref: Any) -> str | None:
    """Stripe references are either an ID string or an expanded object."""
    if not ref:
        return None
    if isinstance(ref, str):
        return ref
    return _as_dict(ref).get("id")


def parse_subscription(obj: Any) -> ProviderSubscription:
    """Build a ProviderSubscription from a Stripe Subscription object."""
    data = _as_dict(obj)
    if not isinstance(data.get("id"), str) or not data["id"]:
        raise MalformedPayload("Stripe subscription has no id")
    if not isinstance(data.get("metadata") or {}, dict):
        raise MalformedPayload("Stripe subscription metadata is not an object")

    items = (data.get("items") or {}).get("data") or []
    first_item = items[0] if items and isinstance(items[0], dict) else {}

    customer = data.get("customer")
    customer_email = None
    if isinstance(customer, dict) and not customer.get("deleted"):
        customer_email = customer.get("email")

    # Newer API versions nest the billing period on the item
    period_end_ts = first_item.get("current_period_end") or data.get("current_period_end")
    period_end = datetime.fromtimestamp(period_end_ts, tz=UTC) if period_end_ts else None

    return ProviderSubscription(
        id=data["id"],
        status=data.get("status") or "",
        customer_id=_ref_id(customer),
        customer_email=customer_email,
        metadata=dict(data.get("metadata") or {}),
        quantity=first_item.get("quantity") or 1,
        price_id=(first_item.get("price") or {}).get("id"),
        current_period_end=period_end,
    )


class StripeProvider(BillingProvider):
    """Stripe Billing adapter."""

    name = "stripe"
    signature_header = "Stripe-Signature"

    def __init__(self, secret_key: str, webhook_secret: str):
        super().__init__(webhook_secret)
        self.secret_key = secret_key

    def verify(self, payload: bytes, signature: str) -> WebhookEvent:
        if not signature:
            raise InvalidSignature("Missing Stripe-Signature header")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise MalformedPayload(str(e)) from e
        except stripe.SignatureVerificationError as e:
            raise InvalidSignature(str(e)) from e

        data = _as_dict(event)
        event_type = data.get("type", "")
        return WebhookEvent(
            id=data.get("id", ""),
            type=event_type,
            kind=STRIPE_EVENT_TYPES.get(event_type),
            data=_as_dict((data.get("data") or {}).get("object")),
        )

    def subscription_from_event(self, event: WebhookEvent) -> ProviderSubscription:
        return parse_subscription(event.data)

    def checkout_subscription_ref(self, event: WebhookEvent) -> str | None:
        return _ref_id(event.data.get("subscription"))

    def invoice_subscription_ref(self, event: WebhookEvent) -> str | None:
        parent = event.data.get("parent") or {}
        details = parent.get("subscription_details") or {}
        # Pre-basil invoices carry the reference at the top level
        return _ref_id(details.get("subscription") or event.data.get("subscription"))

    def retrieve_subscription(self, subscription_id: str) -> ProviderSubscription:
        try:
            subscription = stripe.Subscription.retrieve(
                subscription_id, api_key=self.secret_key
            )
        except stripe.StripeError as e:
            logger.error("Failed to retrieve subscription %s: %s", subscription_id, e)
            raise ProviderError(str(e)) from e

        try:
            return parse_subscription(subscription)
        except MalformedPayload as e:
            raise ProviderError(str(e)) from e

    def retrieve_customer(self, customer_id: str) -> ProviderCustomer | None:
        try:
            customer = _as_dict(
                stripe.Customer.retrieve(customer_id, api_key=self.secret_key)
            )
        except stripe.StripeError as e:
            raise ProviderError(str(e)) from e
        if customer.get("deleted"):
            return None
        return ProviderCustomer(id=customer["id"], email=customer.get("email"))

    def create_customer(self, organization: "Organization", email: str | None) -> str | None:
        customer_data: dict = {
            "name": organization.name,
            "metadata": {"organization_id": str(organization.id)},
        }
        if email:
            customer_data["email"] = email

        try:
            customer = stripe.Customer.create(api_key=self.secret_key, **customer_data)
        except stripe.StripeError as e:
            raise ProviderError(str(e)) from e

        logger.info("Created Stripe customer %s for org %s", customer.id, organization.id)
        return customer.id

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
        metadata = {"organization_id": str(organization.id)}
        params: dict = {
            "mode": "subscription",
            "line_items": [{"price": plan_id, "quantity": quantity}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
            # Copied onto the subscription so every later event can be correlated
            "subscription_data": {"metadata": metadata},
        }
        if organization.billing_customer_id:
            params["customer"] = organization.billing_customer_id
        elif customer_email:
            params["customer_email"] = customer_email
        if discount_code:
            params["discounts"] = [{"promotion_code": discount_code}]
        else:
            params["allow_promotion_codes"] = True

        try:
            session = stripe.checkout.Session.create(api_key=self.secret_key, **params)
        except stripe.StripeError as e:
            raise ProviderError(str(e)) from e

        if not session.url:
            raise ProviderError("Checkout URL not returned from Stripe")

        logger.info("Created checkout session %s for org %s", session.id, organization.id)
        return session.url

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=return_url,
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            raise ProviderError(str(e)) from e
        return session.url

    def update_seats(self, subscription_id: str, seats: int) -> None:
        try:
            subscription = _as_dict(
                stripe.Subscription.retrieve(subscription_id, api_key=self.secret_key)
            )
            items = (subscription.get("items") or {}).get("data") or []
            if not items:
                raise ProviderError("Subscription item not found")

            stripe.Subscription.modify(
                subscription_id,
                items=[{"id": items[0]["id"], "quantity": seats}],
                proration_behavior="create_prorations",
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.error("Failed to update seats for %s: %s", subscription_id, e)
            raise ProviderError(str(e)) from e

        logger.info("Updated subscription %s to %d seats", subscription_id, seats)
