"""
Billing API schemas - request/response types for billing endpoints.
"""

from ninja import Schema
from pydantic import Field


class ErrorResponse(Schema):
    """Standard error response format."""

    detail: str = Field(..., description="Human-readable error message")


class StripeCheckoutRequest(Schema):
    """Request to create a Stripe Checkout session."""

    price_id: str = Field(..., pattern=r"^price_")
    reference_id: str
    customer_email: str | None = None
    quantity: int | None = Field(default=None, ge=1)  # If None, uses current seat count
    success_url: str | None = None
    cancel_url: str | None = None


class CreemCheckoutRequest(Schema):
    """Request to create a Creem checkout."""

    product_id: str
    reference_id: str
    units: int | None = Field(default=None, ge=1)
    discount_code: str | None = None
    customer_email: str | None = None
    success_url: str | None = None


class PortalSessionRequest(Schema):
    """Request to create a customer portal session."""

    reference_id: str
    return_url: str | None = None


class SessionUrlResponse(Schema):
    """Hosted page URL to redirect the user to."""

    url: str


class SeatUpdateRequest(Schema):
    reference_id: str
    seats: int = Field(..., ge=1)


class SeatUpdateResponse(Schema):
    seats: int


class SubscriptionResponse(Schema):
    """Current subscription state of an organization."""

    status: str  # 'inactive', 'active', 'canceled', 'past_due', 'trialing'
    seats: int
    is_active: bool
    has_billing_account: bool
