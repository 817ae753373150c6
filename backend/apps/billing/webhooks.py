"""
Payment provider webhook handlers.

Plain Django views (not Django Ninja) because signature verification needs
the raw request body.
"""

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from apps.billing.exceptions import InvalidSignature, MalformedPayload, PersistenceFailure
from apps.billing.notifications import NotificationDispatcher
from apps.billing.providers import BillingProvider, get_provider
from apps.billing.router import route_event
from apps.core.logging import bind_contextvars, get_logger

logger = get_logger(__name__)


def process_webhook(request: HttpRequest, provider: BillingProvider) -> HttpResponse:
    """
    Verify a delivery, route it, and acknowledge.

    400 tells the provider the delivery itself is bad; 500 asks it to retry.
    """
    bind_contextvars(provider=provider.name)

    signature = request.headers.get(provider.signature_header)
    if not signature:
        logger.warning("billing_webhook_missing_signature")
        return JsonResponse({"error": "Missing signature"}, status=400)

    if not provider.webhook_secret:
        logger.error("billing_webhook_secret_not_configured")
        return JsonResponse({"error": "Webhook not configured"}, status=500)

    try:
        event = provider.verify(request.body, signature)
    except MalformedPayload as e:
        logger.warning("billing_webhook_invalid_payload", error=str(e))
        return JsonResponse({"error": "Invalid payload"}, status=400)
    except InvalidSignature as e:
        logger.warning("billing_webhook_invalid_signature", error=str(e))
        return JsonResponse({"error": "Invalid signature"}, status=400)

    bind_contextvars(event_type=event.type)
    logger.info("billing_webhook_received", event_id=event.id)

    try:
        result = route_event(event, provider=provider, dispatcher=NotificationDispatcher())
    except MalformedPayload as e:
        # Signed but unusable; redelivering the same body cannot succeed
        logger.warning("billing_webhook_invalid_object", event_id=event.id, error=str(e))
        return JsonResponse({"error": "Invalid payload"}, status=400)
    except PersistenceFailure:
        logger.exception("billing_webhook_persistence_failed", event_id=event.id)
        return JsonResponse({"error": "Persistence failure"}, status=500)
    except Exception:
        logger.exception("billing_webhook_handler_error", event_id=event.id)
        # Return 500 so the provider retries with backoff
        return JsonResponse({"error": "Webhook handler failed"}, status=500)

    logger.info("billing_webhook_processed", event_id=event.id, result=result.value)
    return JsonResponse({"received": True})


@csrf_exempt
@require_POST
def stripe_webhook(request: HttpRequest) -> HttpResponse:
    """Handle Stripe webhook events."""
    return process_webhook(request, get_provider("stripe"))


@csrf_exempt
@require_POST
def creem_webhook(request: HttpRequest) -> HttpResponse:
    """Handle Creem webhook events."""
    return process_webhook(request, get_provider("creem"))
