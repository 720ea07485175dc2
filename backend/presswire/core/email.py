"""Email sending via Resend API.

Simple HTTP POST to Resend for verification codes and publish notifications.
Callers submit these coroutines to the SideEffectDispatcher, so a failed
send raises here and is logged there; it never fails the originating request.
"""

import logging
from html import escape

import httpx

from presswire.core.config import Settings

logger = logging.getLogger(__name__)

_RESEND_API_URL = "https://api.resend.com/emails"


class EmailDeliveryError(Exception):
    """Email provider rejected or never received the message."""


class ResendEmailSender:
    """Email collaborator: send(to, subject, html, text).

    Args:
        settings: Application settings (API key, sender, timeout).
        transport: Optional httpx transport (tests inject a MockTransport).
    """

    def __init__(
        self,
        settings: Settings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    async def send(self, *, to: str, subject: str, html: str, text: str) -> None:
        """Send one email.

        When email is disabled or no API key is configured, the send is
        simulated and only logged.

        Raises:
            EmailDeliveryError: If Resend errors or times out.
        """
        api_key = self._settings.resend_api_key.get_secret_value()
        if not self._settings.email_enabled or not api_key:
            logger.info("Email simulated (no provider configured): %s", subject)
            return

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                resp = await client.post(
                    _RESEND_API_URL,
                    headers={"Authorization": f"Bearer {api_key}"},
                    json={
                        "from": self._settings.email_from,
                        "to": to,
                        "subject": subject,
                        "html": html,
                        "text": text,
                    },
                    timeout=self._settings.email_timeout_seconds,
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Resend request failed: {type(exc).__name__}") from exc


def verification_code_email(code: str, domain: str, ttl_minutes: int) -> tuple[str, str, str]:
    """Build subject, HTML and text bodies for a verification code email.

    Returns:
        (subject, html, text)
    """
    subject = f"Your PressWire.ie verification code: {code}"
    text = (
        f"Your verification code for {domain} is {code}.\n\n"
        f"This code expires in {ttl_minutes} minutes. "
        "If you didn't request this, you can safely ignore this email."
    )
    html = (
        f"<p>Your verification code for <strong>{escape(domain)}</strong> is:</p>"
        f"<p style=\"font-size:24px;letter-spacing:4px\"><strong>{code}</strong></p>"
        f"<p>This code expires in {ttl_minutes} minutes. "
        "If you didn't request this, you can safely ignore this email.</p>"
    )
    return subject, html, text


def published_email(url: str, management_url: str) -> tuple[str, str, str]:
    """Build subject, HTML and text bodies for a publish confirmation.

    Returns:
        (subject, html, text)
    """
    subject = "Your press release is live"
    text = (
        f"Your press release has been published: {url}\n\n"
        f"Manage it (edit within 24 hours, unpublish, extend): {management_url}\n"
        "Keep this link private. Anyone holding it can change your release."
    )
    html = (
        "<h2>Your press release has been published!</h2>"
        f"<p><a href=\"{escape(url)}\">{escape(url)}</a></p>"
        f"<p>Manage it here: <a href=\"{escape(management_url)}\">{escape(management_url)}</a></p>"
        "<p>Keep this link private. Anyone holding it can change your release.</p>"
    )
    return subject, html, text
