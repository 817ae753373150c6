"""
Shared pytest fixtures for all tests.

This module provides common fixtures used across multiple test modules.
Individual test modules can override these fixtures if needed.

Factories
---------
Import factories directly from their modules:

    from tests.organizations.factories import OrganizationFactory
    from tests.billing.factories import make_stripe_subscription, make_creem_subscription

Example usage:

    @pytest.mark.django_db
    def test_something():
        org = OrganizationFactory.create(subscription_status="active")
"""

from collections.abc import Callable

import pytest
from django.test import Client, RequestFactory

from apps.billing.notifications import NotificationDispatcher


@pytest.fixture
def request_factory() -> RequestFactory:
    """
    Django request factory for unit testing views.

    Use this when you need to test view functions directly without going through
    the full HTTP stack.
    """
    return RequestFactory()


@pytest.fixture
def api_client() -> Client:
    """
    Django test client for full HTTP request/response cycle tests.

    Example:
        def test_api_returns_200(api_client):
            response = api_client.get("/api/v1/health")
            assert response.status_code == 200
    """
    return Client()


class RecordingEmailClient:
    """In-memory stand-in for EmailClient that records sent messages."""

    def __init__(self, fail_with: Exception | None = None):
        self.sent: list = []
        self.fail_with = fail_with

    def send(self, message) -> str:
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)
        return f"email_{len(self.sent)}"


def run_inline(task: Callable[[], None]) -> None:
    """Spawn strategy that runs notification delivery on the calling thread."""
    task()


@pytest.fixture
def email_client() -> RecordingEmailClient:
    return RecordingEmailClient()


@pytest.fixture
def dispatcher(email_client: RecordingEmailClient) -> NotificationDispatcher:
    """
    Notification dispatcher that delivers synchronously into email_client.

    Example:
        def test_sends(dispatcher, email_client):
            dispatcher.notify_async(NotificationKind.PAYMENT_FAILED, "a@b.co", {})
            assert len(email_client.sent) == 1
    """
    return NotificationDispatcher(email_client=email_client, spawn=run_inline)
