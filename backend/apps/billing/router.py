"""
Billing event router.

Dispatches a verified webhook event to the synchronizer and schedules the
matching notification. Provider API failures and persistence failures
propagate so the webhook answers 5xx and the provider redelivers.
"""

from enum import StrEnum
from functools import partial

from django.utils import dateformat

from apps.billing.exceptions import ProviderError
from apps.billing.notifications import NotificationDispatcher, NotificationKind
from apps.billing.plans import get_plan_name
from apps.billing.providers.base import (
    BillingEventType,
    BillingProvider,
    ProviderSubscription,
    WebhookEvent,
)
from apps.billing.sync import (
    SyncResult,
    sync_payment_failed,
    sync_subscription,
    sync_subscription_deleted,
)
from apps.core.logging import get_logger

logger = get_logger(__name__)


class RouteResult(StrEnum):
    HANDLED = "handled"
    IGNORED = "ignored"


def route_event(
    event: WebhookEvent,
    *,
    provider: BillingProvider,
    dispatcher: NotificationDispatcher,
) -> RouteResult:
    """Apply a verified event. Unknown event types are ignored."""
    match event.kind:
        case BillingEventType.CHECKOUT_COMPLETED:
            # Checkout payloads only reference the subscription
            subscription_id = provider.checkout_subscription_ref(event)
            if not subscription_id:
                logger.info("billing_checkout_without_subscription", event_id=event.id)
                return RouteResult.IGNORED
            subscription = provider.retrieve_subscription(subscription_id)
            subscription = subscription.with_fallback_metadata(provider.checkout_metadata(event))
            result = sync_subscription(subscription)
            _notify(provider, dispatcher, result, subscription, NotificationKind.SUBSCRIPTION_CREATED)

        case BillingEventType.SUBSCRIPTION_CREATED:
            # The welcome email goes out on checkout completion
            sync_subscription(provider.subscription_from_event(event))

        case BillingEventType.SUBSCRIPTION_UPDATED:
            subscription = provider.subscription_from_event(event)
            result = sync_subscription(subscription)
            _notify(provider, dispatcher, result, subscription, NotificationKind.SUBSCRIPTION_UPDATED)

        case BillingEventType.SUBSCRIPTION_DELETED:
            subscription = provider.subscription_from_event(event)
            result = sync_subscription_deleted(subscription)
            _notify(provider, dispatcher, result, subscription, NotificationKind.SUBSCRIPTION_CANCELED)

        case BillingEventType.PAYMENT_FAILED:
            subscription_id = provider.invoice_subscription_ref(event)
            if not subscription_id:
                logger.info("billing_invoice_without_subscription", event_id=event.id)
                return RouteResult.IGNORED
            subscription = provider.retrieve_subscription(subscription_id)
            result = sync_payment_failed(subscription)
            _notify(provider, dispatcher, result, subscription, NotificationKind.PAYMENT_FAILED)

        case _:
            logger.debug("billing_webhook_unhandled_event", event_type=event.type)
            return RouteResult.IGNORED

    return RouteResult.HANDLED


def _notify(
    provider: BillingProvider,
    dispatcher: NotificationDispatcher,
    result: SyncResult | None,
    subscription: ProviderSubscription,
    kind: NotificationKind,
) -> None:
    if result is None:
        return

    context = {"plan_name": get_plan_name(subscription.price_id)}
    if kind == NotificationKind.SUBSCRIPTION_CANCELED and subscription.current_period_end:
        context["access_ends"] = dateformat.format(subscription.current_period_end, "F j, Y")

    # Recipient lookup runs on the notification task, off the request path
    dispatcher.notify_async(kind, partial(_resolve_recipient, provider, subscription), context)


def _resolve_recipient(provider: BillingProvider, subscription: ProviderSubscription) -> str | None:
    """Current customer email; it may have changed since checkout."""
    if subscription.customer_email:
        return subscription.customer_email
    if not subscription.customer_id:
        return None

    try:
        customer = provider.retrieve_customer(subscription.customer_id)
    except ProviderError as e:
        # Billing state is already persisted at this point
        logger.warning(
            "notification_customer_lookup_failed",
            customer_id=subscription.customer_id,
            error=str(e),
        )
        return None
    return customer.email if customer else None
