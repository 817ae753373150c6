"""
Transactional email delivery via the Resend HTTP API.
"""

from dataclasses import dataclass

import httpx

from apps.core.logging import get_logger
from config.settings.base import settings

logger = get_logger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"

# Request timeout in seconds
SEND_TIMEOUT = 10


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or cannot accept a message."""

    pass


@dataclass(frozen=True)
class EmailMessage:
    """A single outbound email."""

    to: str
    subject: str
    html: str


class EmailClient:
    """Thin client over Resend's send endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        sender: str | None = None,
        timeout: float = SEND_TIMEOUT,
    ):
        self.api_key = api_key if api_key is not None else settings.RESEND_API_KEY
        self.sender = sender or settings.EMAIL_FROM
        self.timeout = timeout

    def send(self, message: EmailMessage) -> str:
        """
        Send a message and return the provider's message ID.

        Raises:
            EmailDeliveryError: If no API key is configured, the request fails,
                or the provider answers with a non-2xx status.
        """
        if not self.api_key:
            raise EmailDeliveryError("RESEND_API_KEY is not configured")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={
                        "from": self.sender,
                        "to": [message.to],
                        "subject": message.subject,
                        "html": message.html,
                    },
                )
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email request failed: {e}") from e

        if not 200 <= response.status_code < 300:
            raise EmailDeliveryError(
                f"Email failed: {response.status_code} {response.text[:200]}"
            )

        message_id = response.json().get("id", "")
        logger.info("email_sent", message_id=message_id, subject=message.subject)
        return message_id
