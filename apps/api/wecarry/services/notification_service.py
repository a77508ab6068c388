"""
Notification service - templated emails to users.

Listeners never send directly: they queue a send_notification job so the
request path stays synchronous and delivery gets the worker's retries.
"""

from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass, field

from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.core.errors import WeCarryError
from wecarry.db.enums import JobType
from wecarry.db.models import Job, Post, User
from wecarry.services import job_service
from wecarry.services.email_sender import EmailSender, OutgoingEmail, get_email_sender

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}")


class NotificationError(WeCarryError):
    """A notification could not be built or sent."""

    pass


# =============================================================================
# Templates
# =============================================================================

TEMPLATE_NEW_USER_WELCOME = "new_user_welcome"
TEMPLATE_NEW_THREAD_MESSAGE = "new_thread_message"
TEMPLATE_NEW_REQUEST = "new_request"
TEMPLATE_NEW_OFFER = "new_offer"
TEMPLATE_POST_MATCHES_WATCH = "post_matches_watch"
TEMPLATE_POTENTIAL_PROVIDER_CREATED = "potential_provider_created"
TEMPLATE_POTENTIAL_PROVIDER_SELF_DESTROYED = "potential_provider_self_destroyed"
TEMPLATE_POTENTIAL_PROVIDER_REJECTED = "potential_provider_rejected"
TEMPLATE_MEETING_PARTICIPANT_CHANGED = "meeting_participant_changed"

_STATUS_FOOTER = "<p><a href=\"{{postURL}}\">{{postTitle}}</a></p>"

TEMPLATES: dict[str, dict[str, str]] = {
    TEMPLATE_NEW_USER_WELCOME: {
        "subject": "Welcome to {{appName}}",
        "body": (
            "<p>Hi {{firstName}},</p>"
            "<p>Your {{appName}} account ({{userEmail}}) is ready. "
            "Get started at <a href=\"{{uiURL}}\">{{uiURL}}</a>.</p>"
            "<p>Questions? Write to {{supportEmail}}.</p>"
        ),
    },
    TEMPLATE_NEW_THREAD_MESSAGE: {
        "subject": "New message about {{postTitle}}",
        "body": (
            "<p>{{senderNickname}} wrote:</p>"
            "<blockquote>{{messageContent}}</blockquote>"
            "<p><a href=\"{{threadURL}}\">Reply on {{appName}}</a></p>"
        ),
    },
    TEMPLATE_NEW_REQUEST: {
        "subject": "New request: {{postTitle}}",
        "body": (
            "<p>{{creatorNickname}} needs something carried to "
            "{{postDestination}}.</p>" + _STATUS_FOOTER
        ),
    },
    TEMPLATE_NEW_OFFER: {
        "subject": "New offer: {{postTitle}}",
        "body": (
            "<p>{{creatorNickname}} is offering to carry items to "
            "{{postDestination}}.</p>" + _STATUS_FOOTER
        ),
    },
    TEMPLATE_POST_MATCHES_WATCH: {
        "subject": "New post for your watch \"{{watchName}}\": {{postTitle}}",
        "body": (
            "<p>{{creatorNickname}} posted something to {{postDestination}} "
            "that matches your watch \"{{watchName}}\".</p>" + _STATUS_FOOTER
        ),
    },
    "request_from_open_to_committed": {
        "subject": "{{providerNickname}} offered to carry {{postTitle}}",
        "body": "<p>{{providerNickname}} has committed to your request.</p>" + _STATUS_FOOTER,
    },
    "request_from_committed_to_open": {
        "subject": "Request reopened: {{postTitle}}",
        "body": "<p>{{creatorNickname}} has reopened this request.</p>" + _STATUS_FOOTER,
    },
    "request_from_committed_to_accepted": {
        "subject": "Your offer was accepted: {{postTitle}}",
        "body": (
            "<p>{{creatorNickname}} accepted your offer to carry this request.</p>"
            + _STATUS_FOOTER
        ),
    },
    "request_from_committed_to_removed": {
        "subject": "Request removed: {{postTitle}}",
        "body": "<p>{{creatorNickname}} removed a request you committed to.</p>" + _STATUS_FOOTER,
    },
    "request_from_accepted_to_open": {
        "subject": "Request reopened: {{postTitle}}",
        "body": (
            "<p>{{creatorNickname}} no longer needs you to carry this request.</p>"
            + _STATUS_FOOTER
        ),
    },
    "request_from_accepted_to_delivered": {
        "subject": "Request delivered: {{postTitle}}",
        "body": (
            "<p>{{providerNickname}} says your request has been delivered. "
            "Please confirm you received it.</p>" + _STATUS_FOOTER
        ),
    },
    "request_from_accepted_to_received": {
        "subject": "Request received: {{postTitle}}",
        "body": "<p>{{creatorNickname}} has received the item you carried.</p>" + _STATUS_FOOTER,
    },
    "request_from_accepted_to_removed": {
        "subject": "Request removed: {{postTitle}}",
        "body": "<p>{{creatorNickname}} removed a request you accepted.</p>" + _STATUS_FOOTER,
    },
    "request_from_delivered_to_completed": {
        "subject": "Request completed: {{postTitle}}",
        "body": "<p>{{creatorNickname}} marked the request as completed.</p>" + _STATUS_FOOTER,
    },
    "request_from_received_to_completed": {
        "subject": "Request completed: {{postTitle}}",
        "body": "<p>{{creatorNickname}} marked the request as completed.</p>" + _STATUS_FOOTER,
    },
    TEMPLATE_POTENTIAL_PROVIDER_CREATED: {
        "subject": "{{providerNickname}} can help with {{postTitle}}",
        "body": (
            "<p>{{providerNickname}} offered to carry your request.</p>" + _STATUS_FOOTER
        ),
    },
    TEMPLATE_POTENTIAL_PROVIDER_SELF_DESTROYED: {
        "subject": "{{providerNickname}} withdrew from {{postTitle}}",
        "body": (
            "<p>{{providerNickname}} can no longer carry your request.</p>" + _STATUS_FOOTER
        ),
    },
    TEMPLATE_POTENTIAL_PROVIDER_REJECTED: {
        "subject": "Your offer for {{postTitle}} was declined",
        "body": (
            "<p>{{creatorNickname}} chose not to accept your offer.</p>" + _STATUS_FOOTER
        ),
    },
    TEMPLATE_MEETING_PARTICIPANT_CHANGED: {
        "subject": "{{meetingName}}: participant {{change}}",
        "body": "<p>{{participantNickname}} was {{change}} for {{meetingName}}.</p>",
    },
}


def render_template(
    subject: str,
    body: str,
    variables: dict[str, str],
) -> tuple[str, str]:
    """
    Render a template with variable substitution.

    Variables in format {{variable_name}} are replaced with values.
    Missing variables are replaced with empty string.

    Returns (rendered_subject, rendered_body).
    """
    def replace_var(match: re.Match) -> str:
        value = variables.get(match.group(1))
        return "" if value is None else str(value)

    rendered_subject = VARIABLE_PATTERN.sub(replace_var, subject)
    rendered_body = VARIABLE_PATTERN.sub(replace_var, body)
    return rendered_subject, rendered_body


# =============================================================================
# Messages
# =============================================================================

@dataclass
class NotificationMessage:
    template: str
    to_email: str
    to_name: str = ""
    subject: str | None = None
    data: dict[str, str] = field(default_factory=dict)
    from_email: str | None = None

    def to_payload(self) -> dict:
        return asdict(self)

    @classmethod
    def from_payload(cls, payload: dict) -> "NotificationMessage":
        return cls(
            template=payload["template"],
            to_email=payload.get("to_email", ""),
            to_name=payload.get("to_name", ""),
            subject=payload.get("subject"),
            data=dict(payload.get("data") or {}),
            from_email=payload.get("from_email"),
        )


def build_email(message: NotificationMessage) -> OutgoingEmail:
    """Render message into an email, validating recipient and template."""
    if not message.to_email:
        raise NotificationError("'To' email address is required")
    template = TEMPLATES.get(message.template)
    if template is None:
        raise NotificationError(f"Unknown notification template: {message.template}")

    subject, body = render_template(
        message.subject or template["subject"], template["body"], message.data
    )
    return OutgoingEmail(
        to_email=message.to_email,
        to_name=message.to_name,
        from_email=message.from_email or settings.EMAIL_FROM_ADDRESS,
        subject=subject,
        body=body,
    )


async def send(message: NotificationMessage, sender: EmailSender | None = None) -> None:
    """Render and deliver a notification now."""
    email = build_email(message)
    await (sender or get_email_sender()).send(email)
    logger.info("Sent %s notification", message.template)


def queue_notification(db: Session, message: NotificationMessage) -> Job:
    """Schedule delivery of message by the worker."""
    # Fail fast on bad messages rather than in the worker
    build_email(message)
    return job_service.schedule_job(db, JobType.SEND_NOTIFICATION, message.to_payload())


# =============================================================================
# Template data helpers
# =============================================================================

def base_data() -> dict[str, str]:
    return {
        "appName": settings.APP_NAME,
        "uiURL": settings.UI_URL,
        "supportEmail": settings.SUPPORT_EMAIL,
    }


def post_url(post: Post) -> str:
    return f"{settings.UI_URL.rstrip('/')}/requests/{post.uuid}"


def post_data(post: Post, provider: User | None = None) -> dict[str, str]:
    """Template variables describing a post and the people around it."""
    data = base_data()
    data.update(
        {
            "postTitle": post.title,
            "postURL": post_url(post),
            "postDestination": post.destination.description if post.destination else "",
            "creatorNickname": post.created_by.nickname if post.created_by else "",
            "creatorEmail": post.created_by.email if post.created_by else "",
        }
    )
    provider = provider or post.provider
    if provider is not None:
        data["providerNickname"] = provider.nickname
        data["providerEmail"] = provider.email
    return data


def message_for_user(
    template: str,
    user: User,
    data: dict[str, str],
) -> NotificationMessage:
    return NotificationMessage(
        template=template,
        to_email=user.email,
        to_name=user.real_name,
        data=data,
    )
