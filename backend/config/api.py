"""
Django Ninja API configuration.
"""

from django.http import HttpRequest
from ninja import NinjaAPI

from apps.billing.api import router as billing_router

api = NinjaAPI(
    title="Billing Reconciler API",
    version="1.0.0",
    description="Checkout, customer portal and subscription status for Stripe and Creem.",
    openapi_extra={
        "tags": [
            {
                "name": "billing",
                "description": "Hosted checkout, customer portal and seat management",
            },
            {
                "name": "health",
                "description": "Service health and readiness checks",
            },
        ],
    },
)

# No authentication is wired in: anyone holding an organization ID can open
# its billing portal. Pass the host project's auth here (for example
# ninja.security.django_auth) before exposing these endpoints.
BILLING_API_AUTH = None

api.add_router("/billing", billing_router, auth=BILLING_API_AUTH)


@api.get("/health", tags=["health"], operation_id="healthCheck", summary="Health check")
def health_check(request: HttpRequest) -> dict:
    """Health check endpoint for load balancer."""
    return {"status": "ok"}
