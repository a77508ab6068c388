"""Email sender interface + selection helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from wecarry.core.config import settings
from wecarry.services.http_service import DEFAULT_RETRY_STATUSES, request_with_retries

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_MAX_ATTEMPTS = 3
RESEND_RETRY_BASE_DELAY = 0.5
RESEND_RETRY_MAX_DELAY = 4.0
RESEND_TIMEOUT_SECONDS = 20.0


class EmailSendError(Exception):
    """The email provider rejected or failed a send."""

    pass


@dataclass(frozen=True)
class OutgoingEmail:
    to_email: str
    to_name: str
    from_email: str
    subject: str
    body: str


class EmailSender(Protocol):
    key: str

    async def send(self, email: OutgoingEmail) -> None:
        """Deliver one rendered email or raise EmailSendError."""


class DummyEmailSender:
    """Keeps sent emails in memory. Used in dev and tests."""

    key = "dummy"

    def __init__(self) -> None:
        self.sent: list[OutgoingEmail] = []

    async def send(self, email: OutgoingEmail) -> None:
        logger.info("Dummy email sender: %r to %s", email.subject, email.to_email)
        self.sent.append(email)

    def sent_to(self, to_email: str) -> list[OutgoingEmail]:
        return [e for e in self.sent if e.to_email == to_email]

    def reset(self) -> None:
        self.sent.clear()


class ResendEmailSender:
    """Sends through the Resend HTTP API with retry."""

    key = "resend"

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    async def send(self, email: OutgoingEmail) -> None:
        payload: dict[str, object] = {
            "from": email.from_email,
            "to": [email.to_email],
            "subject": email.subject,
            "html": email.body,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=RESEND_TIMEOUT_SECONDS) as client:

                async def request_fn() -> httpx.Response:
                    return await client.post(RESEND_SEND_URL, headers=headers, json=payload)

                response = await request_with_retries(
                    request_fn,
                    max_attempts=RESEND_MAX_ATTEMPTS,
                    base_delay=RESEND_RETRY_BASE_DELAY,
                    max_delay=RESEND_RETRY_MAX_DELAY,
                    retry_statuses=DEFAULT_RETRY_STATUSES,
                    label="resend",
                )
        except httpx.HTTPError as exc:
            raise EmailSendError(f"Resend request failed: {exc}") from exc

        if response.status_code >= 300:
            raise EmailSendError(
                f"Resend returned {response.status_code}: {response.text[:200]}"
            )


_sender: EmailSender | None = None


def build_sender() -> EmailSender:
    """Sender for the configured EMAIL_PROVIDER."""
    if settings.EMAIL_PROVIDER == "resend":
        if not settings.RESEND_API_KEY:
            raise EmailSendError("RESEND_API_KEY is not configured")
        return ResendEmailSender(settings.RESEND_API_KEY)
    return DummyEmailSender()


def get_email_sender() -> EmailSender:
    global _sender
    if _sender is None:
        _sender = build_sender()
    return _sender


def set_email_sender(sender: EmailSender | None) -> None:
    """Replace the process-wide sender (None rebuilds it from settings)."""
    global _sender
    _sender = sender
