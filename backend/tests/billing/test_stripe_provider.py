"""
Tests for the Stripe adapter.

Signature verification runs against real HMAC signatures; API calls are
mocked at the stripe module boundary.
"""

import json
import time
from datetime import UTC, datetime
from unittest.mock import MagicMock, patch

import pytest
import stripe

from apps.billing.exceptions import InvalidSignature, MalformedPayload, ProviderError
from apps.billing.providers.base import BillingEventType
from apps.billing.providers.stripe_provider import (
    STRIPE_API_VERSION,
    STRIPE_MAX_NETWORK_RETRIES,
    StripeProvider,
    parse_subscription,
)
from tests.billing.factories import (
    make_event,
    make_stripe_event,
    make_stripe_subscription,
    sign_stripe,
)

WEBHOOK_SECRET = "whsec_test_secret"


@pytest.fixture
def provider() -> StripeProvider:
    return StripeProvider(secret_key="sk_test_123", webhook_secret=WEBHOOK_SECRET)


class TestVerify:
    """Tests for webhook signature verification."""

    def test_valid_signature_returns_normalized_event(self, provider: StripeProvider) -> None:
        body = json.dumps(
            make_stripe_event(
                "customer.subscription.updated",
                make_stripe_subscription(organization_id="org-1"),
                event_id="evt_abc",
            )
        ).encode()

        event = provider.verify(body, sign_stripe(body, WEBHOOK_SECRET))

        assert event.id == "evt_abc"
        assert event.type == "customer.subscription.updated"
        assert event.kind == BillingEventType.SUBSCRIPTION_UPDATED
        assert event.data["id"] == "sub_test_123"

    def test_tampered_body_raises_invalid_signature(self, provider: StripeProvider) -> None:
        body = json.dumps(make_stripe_event("customer.subscription.updated", {})).encode()
        header = sign_stripe(body, WEBHOOK_SECRET)

        with pytest.raises(InvalidSignature):
            provider.verify(body.replace(b"updated", b"deleted"), header)

    def test_wrong_secret_raises_invalid_signature(self, provider: StripeProvider) -> None:
        body = json.dumps(make_stripe_event("customer.subscription.updated", {})).encode()

        with pytest.raises(InvalidSignature):
            provider.verify(body, sign_stripe(body, "whsec_other"))

    def test_stale_timestamp_raises_invalid_signature(self, provider: StripeProvider) -> None:
        body = json.dumps(make_stripe_event("customer.subscription.updated", {})).encode()

        stale = int(time.time()) - 3600

        with pytest.raises(InvalidSignature):
            provider.verify(body, sign_stripe(body, WEBHOOK_SECRET, timestamp=stale))

    def test_empty_signature_raises_invalid_signature(self, provider: StripeProvider) -> None:
        with pytest.raises(InvalidSignature):
            provider.verify(b"{}", "")

    def test_non_json_body_raises_malformed_payload(self, provider: StripeProvider) -> None:
        body = b"not json"

        with pytest.raises(MalformedPayload):
            provider.verify(body, sign_stripe(body, WEBHOOK_SECRET))

    def test_unknown_event_type_has_no_kind(self, provider: StripeProvider) -> None:
        body = json.dumps(make_stripe_event("customer.created", {"id": "cus_1"})).encode()

        event = provider.verify(body, sign_stripe(body, WEBHOOK_SECRET))

        assert event.kind is None

    @patch("apps.billing.providers.stripe_provider.stripe.Webhook.construct_event")
    def test_invalid_payload_from_sdk(self, mock_construct: MagicMock, provider) -> None:
        mock_construct.side_effect = ValueError("Invalid payload")

        with pytest.raises(MalformedPayload):
            provider.verify(b"{}", "t=1,v1=abc")


class TestParseSubscription:
    """Tests for parse_subscription."""

    def test_reads_item_fields(self) -> None:
        sub = parse_subscription(
            make_stripe_subscription(
                organization_id="org-1", quantity=4, price_id="price_starter_monthly"
            )
        )

        assert sub.id == "sub_test_123"
        assert sub.status == "active"
        assert sub.customer_id == "cus_test_123"
        assert sub.customer_email is None
        assert sub.organization_reference == "org-1"
        assert sub.quantity == 4
        assert sub.price_id == "price_starter_monthly"
        assert sub.current_period_end == datetime(2026, 1, 1, tzinfo=UTC)

    def test_expanded_customer_provides_email(self) -> None:
        sub = parse_subscription(
            make_stripe_subscription(customer={"id": "cus_9", "email": "billing@acme.test"})
        )

        assert sub.customer_id == "cus_9"
        assert sub.customer_email == "billing@acme.test"

    def test_deleted_customer_has_no_email(self) -> None:
        sub = parse_subscription(
            make_stripe_subscription(customer={"id": "cus_9", "deleted": True})
        )

        assert sub.customer_email is None

    def test_period_end_falls_back_to_top_level(self) -> None:
        data = make_stripe_subscription(current_period_end=None)
        data["current_period_end"] = 1767225600

        assert parse_subscription(data).current_period_end == datetime(2026, 1, 1, tzinfo=UTC)

    def test_missing_items_defaults_to_one_seat(self) -> None:
        sub = parse_subscription({"id": "sub_1", "status": "trialing"})

        assert sub.quantity == 1
        assert sub.price_id is None
        assert sub.metadata == {}

    def test_missing_id_raises_malformed_payload(self) -> None:
        with pytest.raises(MalformedPayload):
            parse_subscription({"status": "active"})

    def test_non_object_metadata_raises_malformed_payload(self) -> None:
        with pytest.raises(MalformedPayload):
            parse_subscription({"id": "sub_1", "metadata": "org-1"})


class TestEventReferences:
    def test_checkout_subscription_ref(self, provider: StripeProvider) -> None:
        event = make_event(BillingEventType.CHECKOUT_COMPLETED, {"subscription": "sub_1"})

        assert provider.checkout_subscription_ref(event) == "sub_1"

    def test_checkout_without_subscription(self, provider: StripeProvider) -> None:
        event = make_event(BillingEventType.CHECKOUT_COMPLETED, {"mode": "payment"})

        assert provider.checkout_subscription_ref(event) is None

    def test_invoice_ref_from_parent_details(self, provider: StripeProvider) -> None:
        event = make_event(
            BillingEventType.PAYMENT_FAILED,
            {"parent": {"subscription_details": {"subscription": "sub_new"}}},
        )

        assert provider.invoice_subscription_ref(event) == "sub_new"

    def test_invoice_ref_legacy_top_level(self, provider: StripeProvider) -> None:
        event = make_event(BillingEventType.PAYMENT_FAILED, {"subscription": "sub_old"})

        assert provider.invoice_subscription_ref(event) == "sub_old"

    def test_checkout_metadata(self, provider: StripeProvider) -> None:
        event = make_event(
            BillingEventType.CHECKOUT_COMPLETED, {"metadata": {"organization_id": "org-1"}}
        )

        assert provider.checkout_metadata(event) == {"organization_id": "org-1"}


class TestApiCalls:
    """Tests for Stripe API wrappers."""

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_retrieve_subscription_passes_api_key(self, mock_retrieve, provider) -> None:
        mock_retrieve.return_value = make_stripe_subscription(organization_id="org-1")

        sub = provider.retrieve_subscription("sub_test_123")

        mock_retrieve.assert_called_once_with("sub_test_123", api_key="sk_test_123")
        assert sub.organization_reference == "org-1"

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_retrieve_subscription_error_raises_provider_error(
        self, mock_retrieve, provider
    ) -> None:
        mock_retrieve.side_effect = stripe.APIConnectionError("network down")

        with pytest.raises(ProviderError):
            provider.retrieve_subscription("sub_1")

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_retrieve_subscription_without_id_raises_provider_error(
        self, mock_retrieve, provider
    ) -> None:
        mock_retrieve.return_value = {"object": "subscription", "status": "active"}

        with pytest.raises(ProviderError):
            provider.retrieve_subscription("sub_1")

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_api_calls_leave_module_key_unset(self, mock_retrieve, provider) -> None:
        mock_retrieve.return_value = make_stripe_subscription()

        provider.retrieve_subscription("sub_test_123")

        assert stripe.api_key is None
        assert stripe.api_version == STRIPE_API_VERSION
        assert stripe.max_network_retries == STRIPE_MAX_NETWORK_RETRIES

    @patch("apps.billing.providers.stripe_provider.stripe.Customer.retrieve")
    def test_retrieve_customer(self, mock_retrieve, provider) -> None:
        mock_retrieve.return_value = {"id": "cus_1", "email": "a@example.com"}

        customer = provider.retrieve_customer("cus_1")

        assert customer is not None
        assert customer.email == "a@example.com"

    @patch("apps.billing.providers.stripe_provider.stripe.Customer.retrieve")
    def test_retrieve_deleted_customer_returns_none(self, mock_retrieve, provider) -> None:
        mock_retrieve.return_value = {"id": "cus_1", "deleted": True}

        assert provider.retrieve_customer("cus_1") is None

    @patch("apps.billing.providers.stripe_provider.stripe.checkout.Session.create")
    def test_checkout_session_carries_organization_metadata(self, mock_create, provider) -> None:
        mock_create.return_value = MagicMock(id="cs_1", url="https://checkout.stripe.com/cs_1")
        org = MagicMock(id="org-uuid", billing_customer_id="cus_1")

        url = provider.create_checkout_session(
            org,
            plan_id="price_pro_monthly",
            quantity=3,
            success_url="https://app/ok",
            cancel_url="https://app/cancel",
        )

        assert url == "https://checkout.stripe.com/cs_1"
        kwargs = mock_create.call_args.kwargs
        assert kwargs["customer"] == "cus_1"
        assert kwargs["line_items"] == [{"price": "price_pro_monthly", "quantity": 3}]
        assert kwargs["metadata"] == {"organization_id": "org-uuid"}
        assert kwargs["subscription_data"] == {"metadata": {"organization_id": "org-uuid"}}
        assert kwargs["allow_promotion_codes"] is True
        assert kwargs["api_key"] == "sk_test_123"

    @patch("apps.billing.providers.stripe_provider.stripe.checkout.Session.create")
    def test_checkout_session_without_url_raises(self, mock_create, provider) -> None:
        mock_create.return_value = MagicMock(id="cs_1", url=None)
        org = MagicMock(id="org-uuid", billing_customer_id=None)

        with pytest.raises(ProviderError):
            provider.create_checkout_session(
                org,
                plan_id="price_pro_monthly",
                quantity=1,
                success_url="https://app/ok",
                cancel_url="https://app/cancel",
                customer_email="a@example.com",
            )

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.modify")
    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_update_seats_prorates_first_item(self, mock_retrieve, mock_modify, provider) -> None:
        mock_retrieve.return_value = make_stripe_subscription()

        provider.update_seats("sub_test_123", 8)

        mock_modify.assert_called_once_with(
            "sub_test_123",
            items=[{"id": "si_test_123", "quantity": 8}],
            proration_behavior="create_prorations",
            api_key="sk_test_123",
        )

    @patch("apps.billing.providers.stripe_provider.stripe.Subscription.retrieve")
    def test_update_seats_without_items_raises(self, mock_retrieve, provider) -> None:
        mock_retrieve.return_value = {"id": "sub_1", "items": {"data": []}}

        with pytest.raises(ProviderError):
            provider.update_seats("sub_1", 2)
