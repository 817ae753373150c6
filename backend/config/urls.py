"""
URL configuration for the backend.
"""

from django.urls import path

from apps.billing.webhooks import creem_webhook, stripe_webhook

from .api import api

urlpatterns = [
    path("api/v1/", api.urls),
    # Webhooks - outside Django Ninja for raw request handling
    path("webhooks/stripe/", stripe_webhook, name="stripe-webhook"),
    path("webhooks/creem/", creem_webhook, name="creem-webhook"),
]
