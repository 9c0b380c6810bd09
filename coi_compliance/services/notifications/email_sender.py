"""Outbound email through the Resend REST API."""

from typing import Optional

import httpx

from coi_compliance.core.config import settings
from coi_compliance.schemas.notifications import SendResult
from coi_compliance.utils.logging import get_logger

LOGGER = get_logger(__name__)


class EmailSender:
    """Sends notification emails.

    With no API key configured the email is logged instead of sent and the
    result is flagged ``dev_mode``.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        from_address: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.email.resend_api_key
        self.api_url = api_url or settings.email.resend_api_url
        self.from_address = from_address or settings.email.from_address

    async def send(self, to: str, subject: str, body: str) -> SendResult:
        """Send one HTML email. Never raises; failures come back in the result."""
        if not self.api_key:
            LOGGER.info(
                "RESEND_API_KEY is missing, email logged only",
                extra={"to": to, "from": self.from_address, "subject": subject},
            )
            LOGGER.debug(f"Email body: {body[:200]}...")
            return SendResult(success=True, dev_mode=True)

        LOGGER.info(f"Sending email via Resend to {to}")
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.api_url,
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={"from": self.from_address, "to": to, "subject": subject, "html": body},
                    timeout=settings.http_timeout,
                )
        except httpx.HTTPError as e:
            LOGGER.error(f"Email send failed: {str(e)}", exc_info=True)
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

        if response.status_code >= 400:
            LOGGER.error(
                "Resend API error",
                extra={"status_code": response.status_code, "body": response.text[:500]},
            )
            return SendResult(success=False, error=f"Resend error {response.status_code}: {response.text[:200]}")

        try:
            message_id = response.json().get("id")
        except ValueError:
            message_id = None
        LOGGER.info(f"Email sent successfully, id: {message_id}")
        return SendResult(success=True, message_id=message_id)
