"""
Billing API endpoints.

Checkout, customer portal and seat management for both providers. Each
endpoint is a passthrough to the provider adapter; subscription state only
changes through webhooks.
"""

from django.http import HttpRequest
from ninja import Router
from ninja.errors import HttpError

from apps.billing.exceptions import BillingAccountMissing
from apps.billing.providers import PROVIDER_NAMES, get_provider
from apps.billing.schemas import (
    CreemCheckoutRequest,
    ErrorResponse,
    PortalSessionRequest,
    SeatUpdateRequest,
    SeatUpdateResponse,
    SessionUrlResponse,
    StripeCheckoutRequest,
    SubscriptionResponse,
)
from apps.billing.services import create_checkout_session, create_portal_session, update_seats
from apps.core.logging import get_logger
from apps.organizations.models import Organization
from apps.organizations.services import get_organization

logger = get_logger(__name__)

# Endpoints act on whichever organization reference_id names. Authentication
# is applied where the router is mounted (see config/api.py).
router = Router(tags=["billing"])

ERROR_RESPONSES = {400: ErrorResponse, 404: ErrorResponse, 500: ErrorResponse}


def _require_organization(reference_id: str) -> Organization:
    organization = get_organization(reference_id)
    if organization is None:
        raise HttpError(404, "Organization not found")
    return organization


def _create_portal(provider_name: str, payload: PortalSessionRequest) -> SessionUrlResponse:
    organization = _require_organization(payload.reference_id)
    try:
        url = create_portal_session(
            get_provider(provider_name),
            organization,
            return_url=payload.return_url,
        )
    except BillingAccountMissing as e:
        raise HttpError(400, str(e))
    except Exception:
        logger.exception("portal_session_creation_failed", provider=provider_name)
        raise HttpError(500, "Failed to create portal session")
    return SessionUrlResponse(url=url)


@router.post(
    "/stripe/checkout",
    response={200: SessionUrlResponse, **ERROR_RESPONSES},
    operation_id="createStripeCheckout",
    summary="Create Stripe Checkout session",
)
def stripe_checkout(request: HttpRequest, payload: StripeCheckoutRequest) -> SessionUrlResponse:
    """Returns the URL to redirect the user to Stripe Checkout."""
    organization = _require_organization(payload.reference_id)
    try:
        url = create_checkout_session(
            get_provider("stripe"),
            organization,
            plan_id=payload.price_id,
            quantity=payload.quantity,
            customer_email=payload.customer_email,
            success_url=payload.success_url,
            cancel_url=payload.cancel_url,
        )
    except Exception:
        logger.exception("checkout_session_creation_failed", provider="stripe")
        raise HttpError(500, "Failed to create checkout session")
    return SessionUrlResponse(url=url)


@router.post(
    "/creem/checkout",
    response={200: SessionUrlResponse, **ERROR_RESPONSES},
    operation_id="createCreemCheckout",
    summary="Create Creem checkout",
)
def creem_checkout(request: HttpRequest, payload: CreemCheckoutRequest) -> SessionUrlResponse:
    """Returns the URL to redirect the user to Creem checkout."""
    organization = _require_organization(payload.reference_id)
    try:
        url = create_checkout_session(
            get_provider("creem"),
            organization,
            plan_id=payload.product_id,
            quantity=payload.units,
            customer_email=payload.customer_email,
            success_url=payload.success_url,
            discount_code=payload.discount_code,
        )
    except Exception:
        logger.exception("checkout_session_creation_failed", provider="creem")
        raise HttpError(500, "Failed to create checkout session")
    return SessionUrlResponse(url=url)


@router.post(
    "/stripe/portal",
    response={200: SessionUrlResponse, **ERROR_RESPONSES},
    operation_id="createStripePortal",
    summary="Create Stripe Customer Portal session",
)
def stripe_portal(request: HttpRequest, payload: PortalSessionRequest) -> SessionUrlResponse:
    return _create_portal("stripe", payload)


@router.post(
    "/creem/portal",
    response={200: SessionUrlResponse, **ERROR_RESPONSES},
    operation_id="createCreemPortal",
    summary="Create Creem customer portal session",
)
def creem_portal(request: HttpRequest, payload: PortalSessionRequest) -> SessionUrlResponse:
    return _create_portal("creem", payload)


@router.post(
    "/{provider_name}/seats",
    response={200: SeatUpdateResponse, **ERROR_RESPONSES},
    operation_id="updateSeats",
    summary="Update subscription seat count",
)
def update_subscription_seats(
    request: HttpRequest, provider_name: str, payload: SeatUpdateRequest
) -> SeatUpdateResponse:
    """Change the seat count with proration. The webhook confirms the new state."""
    if provider_name not in PROVIDER_NAMES:
        raise HttpError(404, "Unknown billing provider")

    organization = _require_organization(payload.reference_id)
    try:
        seats = update_seats(get_provider(provider_name), organization, payload.seats)
    except BillingAccountMissing as e:
        raise HttpError(400, str(e))
    except Exception:
        logger.exception("seat_update_failed", provider=provider_name)
        raise HttpError(500, "Failed to update seats")
    return SeatUpdateResponse(seats=seats)


@router.get(
    "/subscription",
    response={200: SubscriptionResponse, 404: ErrorResponse},
    operation_id="getSubscription",
    summary="Get current subscription status",
)
def get_subscription(request: HttpRequest, reference_id: str) -> SubscriptionResponse:
    organization = _require_organization(reference_id)
    return SubscriptionResponse(
        status=organization.subscription_status,
        seats=organization.seats,
        is_active=organization.has_active_subscription,
        has_billing_account=bool(organization.billing_customer_id),
    )
