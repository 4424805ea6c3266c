"""
Email Service

Outbound email for one-time codes and post-login security alerts, sent
through the EmailJS REST API.

Delivery problems raise DeliveryFailedError. Callers decide whether that
fails the request (one-time codes) or is only logged (alerts).
"""

import logging
from datetime import UTC, datetime
from typing import Protocol

import httpx

from portfolio_api.config import Settings, get_settings
from portfolio_api.core.errors import DeliveryFailedError

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, recipient: str, subject: str, body: str, **params: str) -> None: ...


class EmailJSSender:
    """EmailSender backed by the EmailJS send endpoint."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def send(self, recipient: str, subject: str, body: str, **params: str) -> None:
        """
        Dispatch one message.

        Args:
            recipient: Destination address
            subject: Subject line
            body: Plain text body
            **params: Extra template parameters

        Raises:
            DeliveryFailedError: If EmailJS is not configured, unreachable,
                or answers with a non-success status
        """
        if not self.settings.email_configured:
            logger.error("Email delivery requested but EmailJS is not configured")
            raise DeliveryFailedError("Email delivery is not configured")

        payload = {
            "service_id": self.settings.emailjs_service_id,
            "template_id": self.settings.emailjs_template_id,
            "user_id": self.settings.emailjs_public_key,
            "template_params": {
                "to_name": "Admin",
                "to_email": recipient,
                "subject": subject,
                "message": body,
                **params,
            },
        }

        try:
            async with httpx.AsyncClient(timeout=self.settings.email_timeout_seconds) as client:
                response = await client.post(self.settings.emailjs_endpoint, json=payload)
        except httpx.RequestError as e:
            logger.error(f"Network error sending email: {e!s}")
            raise DeliveryFailedError() from e

        if response.status_code >= 300:
            logger.error(
                f"EmailJS rejected message: HTTP {response.status_code}",
                extra={"body": response.text[:200]},
            )
            raise DeliveryFailedError()

        logger.info(f"Email sent: {subject}")


def get_email_sender() -> EmailSender:
    """FastAPI dependency returning the configured sender."""
    return EmailJSSender(get_settings())


async def send_security_alert(
    sender: EmailSender,
    recipient: str | None,
    method: str,
    client_address: str,
    user_agent: str | None,
) -> bool:
    """
    Notify the admin that a login completed.

    Failures are logged and reported through the return value; they never
    fail the login.

    Returns:
        True if the alert was handed to the email provider
    """
    if not recipient:
        logger.debug("No admin email configured, skipping security alert")
        return False

    timestamp = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    body = (
        "A successful admin login was detected.\n\n"
        f"Method: {method}\n"
        f"IP Address: {client_address}\n"
        f"Device: {user_agent or 'unknown'}\n"
        f"Time: {timestamp}\n\n"
        "If this wasn't you, change your PIN and remove unknown passkeys."
    )

    try:
        await sender.send(
            recipient,
            "Security Alert: Admin Login",
            body,
            login_method=method,
            ip_address=client_address,
            user_agent=user_agent or "unknown",
            timestamp=timestamp,
        )
    except DeliveryFailedError:
        logger.error("Failed to send security alert", extra={"method": method})
        return False
    return True
