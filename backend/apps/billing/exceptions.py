"""
Billing exceptions.

Verification errors map to 400 responses, persistence and provider errors
to 500 so the provider retries delivery. Notification errors never leave
the notification thread.
"""


class BillingError(Exception):
    """Base exception for billing errors."""

    pass


class InvalidSignature(BillingError):
    """Webhook signature is missing, malformed, or does not match."""

    pass


class MalformedPayload(BillingError):
    """Webhook body could not be parsed into an event."""

    pass


class UnresolvedOrganization(BillingError):
    """Subscription metadata does not reference a known organization."""

    pass


class PersistenceFailure(BillingError):
    """Organization billing state could not be written."""

    pass


class NotificationFailure(BillingError):
    """A billing notification email could not be sent."""

    pass


class ProviderError(BillingError):
    """The payment provider API call failed."""

    pass


class BillingAccountMissing(BillingError):
    """Organization has no provider customer or subscription to act on."""

    pass
