"""
Email delivery backends.

Production mail goes through Resend; development and unconfigured
environments log the message instead. Providers report failure through
``SendResult`` rather than raising, so the notifier decides what a failed
send means.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 30.0


@dataclass
class EmailMessage:
    to: str
    subject: str
    html_body: str
    plain_text_body: str
    reply_to: Optional[str] = None
    # Extra MIME headers, e.g. X-Entity-Ref-ID to stop Gmail threading reminders
    headers: Dict[str, str] = field(default_factory=dict)


@dataclass
class SendResult:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


class EmailProvider(ABC):

    @abstractmethod
    async def send(self, message: EmailMessage) -> SendResult:
        pass


class ResendProvider(EmailProvider):
    """
    Resend HTTP API.

    https://resend.com/docs/api-reference/emails/send-email
    """

    def __init__(self, api_key: str, from_email: str, reply_to: Optional[str] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.reply_to = reply_to

    def _payload(self, message: EmailMessage) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "from": self.from_email,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html_body,
            "text": message.plain_text_body,
        }
        reply_to = message.reply_to or self.reply_to
        if reply_to:
            payload["reply_to"] = reply_to
        if message.headers:
            payload["headers"] = message.headers
        return payload

    async def send(self, message: EmailMessage) -> SendResult:
        if not self.api_key:
            return SendResult(success=False, error="Resend API key not configured")

        try:
            async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:
                response = await client.post(
                    RESEND_API_URL,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=self._payload(message),
                )
        except httpx.HTTPError as e:
            logger.exception(f"Resend request failed for {message.to}")
            return SendResult(success=False, error=str(e))

        if response.status_code != 200:
            logger.error(f"Resend rejected email to {message.to}: {response.status_code} {response.text}")
            return SendResult(success=False, error=response.text)

        return SendResult(success=True, message_id=response.json().get("id"))


class ConsoleProvider(EmailProvider):
    """Logs the plain text body instead of sending."""

    async def send(self, message: EmailMessage) -> SendResult:
        logger.info(
            f"\n{'='*60}\n"
            f"EMAIL (Console Mode)\n"
            f"{'='*60}\n"
            f"To: {message.to}\n"
            f"Subject: {message.subject}\n"
            f"{'='*60}\n"
            f"{message.plain_text_body}\n"
            f"{'='*60}\n"
        )
        return SendResult(success=True, message_id="console-dev")


def get_email_provider(
    resend_api_key: Optional[str] = None,
    from_email: str = "",
    reply_to: Optional[str] = None,
    console_mode: bool = False,
) -> EmailProvider:
    """Console in development or without an API key, otherwise Resend."""
    if console_mode:
        logger.info("Using console email provider (development mode)")
        return ConsoleProvider()

    if not resend_api_key:
        logger.warning("RESEND_API_KEY not set, emails will only be logged")
        return ConsoleProvider()

    return ResendProvider(api_key=resend_api_key, from_email=from_email, reply_to=reply_to)
