"""
Billing notification emails.

Notifications are side effects of a successful sync. They run on a detached
thread so the webhook is acknowledged immediately, and a failed send is only
logged: an email outage must never make the provider redeliver a billing
event.
"""

import contextvars
import threading
from collections.abc import Callable, Mapping
from enum import StrEnum
from functools import partial
from typing import Any

from django.utils.html import format_html

from apps.billing.exceptions import NotificationFailure
from apps.core.email import EmailClient, EmailDeliveryError, EmailMessage
from apps.core.logging import get_logger
from config.settings.base import settings

logger = get_logger(__name__)

# An email address, or a callable that looks one up when the task runs
Recipient = str | Callable[[], str | None]


class NotificationKind(StrEnum):
    SUBSCRIPTION_CREATED = "subscription_created"
    SUBSCRIPTION_UPDATED = "subscription_updated"
    SUBSCRIPTION_CANCELED = "subscription_canceled"
    PAYMENT_FAILED = "payment_failed"


def build_message(kind: NotificationKind, recipient: str, context: Mapping[str, Any]) -> EmailMessage:
    """Render the subject and a short HTML body for a notification."""
    app_name = settings.APP_NAME
    billing_url = f"{settings.APP_URL}/billing"
    plan_name = context.get("plan_name", "Plan")

    match kind:
        case NotificationKind.SUBSCRIPTION_CREATED:
            subject = f"Welcome to {app_name} {plan_name}"
            body = format_html(
                "<p>You're now subscribed to the <strong>{}</strong> plan.</p>",
                plan_name,
            )
        case NotificationKind.SUBSCRIPTION_UPDATED:
            subject = f"{app_name} subscription updated"
            body = format_html(
                "<p>Your subscription has been changed to the <strong>{}</strong> plan.</p>",
                plan_name,
            )
        case NotificationKind.SUBSCRIPTION_CANCELED:
            subject = f"{app_name} subscription cancelled"
            body = format_html(
                "<p>Your <strong>{}</strong> subscription has been cancelled.</p>"
                "<p>You'll continue to have access until <strong>{}</strong>.</p>",
                plan_name,
                context.get("access_ends", "the end of your billing period"),
            )
        case NotificationKind.PAYMENT_FAILED:
            subject = f"Action required: {app_name} payment failed"
            body = format_html(
                "<p>We couldn't process your payment for the <strong>{}</strong> plan.</p>"
                "<p>Please update your payment method to avoid service interruption.</p>",
                plan_name,
            )
        case _:
            raise ValueError(f"Unknown notification kind: {kind}")

    html = format_html('{}<p><a href="{}">Manage billing</a></p>', body, billing_url)
    return EmailMessage(to=recipient, subject=subject, html=html)


def spawn_thread(task: Callable[[], None]) -> None:
    """Run a task on a daemon thread, carrying the caller's log context."""
    ctx = contextvars.copy_context()
    threading.Thread(target=ctx.run, args=(task,), daemon=True, name="billing-notify").start()


class NotificationDispatcher:
    """
    Fire-and-forget sender for billing notifications.

    The spawn callable decides where delivery runs; tests pass one that runs
    the task inline.
    """

    def __init__(
        self,
        email_client: EmailClient | None = None,
        spawn: Callable[[Callable[[], None]], None] | None = None,
    ):
        self.email_client = email_client or EmailClient()
        self.spawn = spawn or spawn_thread

    def notify_async(
        self,
        kind: NotificationKind,
        recipient: Recipient,
        context: Mapping[str, Any],
    ) -> None:
        """
        Schedule a notification. Never raises.

        The recipient may be a callable; it is resolved on the spawned task so
        provider lookups never hold up the webhook response.
        """
        try:
            self.spawn(partial(self._deliver, kind, recipient, dict(context)))
        except Exception:
            logger.exception("notification_spawn_failed", kind=kind.value)

    def send(self, kind: NotificationKind, recipient_email: str, context: Mapping[str, Any]) -> None:
        """
        Send a notification synchronously.

        Raises:
            NotificationFailure: If the email provider rejects the message.
        """
        message = build_message(kind, recipient_email, context)
        try:
            self.email_client.send(message)
        except EmailDeliveryError as e:
            raise NotificationFailure(str(e)) from e

    def _deliver(self, kind: NotificationKind, recipient: Recipient, context: dict) -> None:
        try:
            recipient_email = recipient() if callable(recipient) else recipient
            if not recipient_email:
                logger.info("notification_skipped_no_recipient", kind=kind.value)
                return
            self.send(kind, recipient_email, context)
        except NotificationFailure as e:
            logger.warning("notification_failed", kind=kind.value, error=str(e))
        except Exception:
            logger.exception("notification_unexpected_error", kind=kind.value)
