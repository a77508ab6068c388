"""Tests for notification templates, email senders and the send_notification job."""
import json
from types import SimpleNamespace
from uuid import uuid4

import httpx
import pytest

from wecarry.core.config import settings
from wecarry.db.enums import JobStatus, JobType
from wecarry.jobs.handlers import notifications
from wecarry.services import email_sender, job_service, notification_service
from wecarry.services.email_sender import (
    DummyEmailSender,
    EmailSendError,
    OutgoingEmail,
    ResendEmailSender,
)
from wecarry.services.notification_service import NotificationError, NotificationMessage


def _message(**overrides) -> NotificationMessage:
    values = {
        "template": notification_service.TEMPLATE_NEW_REQUEST,
        "to_email": "helper@example.com",
        "to_name": "Helper",
        "data": {"postTitle": "Bring coffee", "creatorNickname": "jane", "postDestination": "Nairobi"},
    }
    values.update(overrides)
    return NotificationMessage(**values)


# =============================================================================
# Rendering
# =============================================================================

def test_render_template_substitutes_and_blanks_missing():
    subject, body = notification_service.render_template(
        "Hi {{name}}", "<p>{{name}} / {{missing}} / {{ spaced }}</p>", {"name": "Ann"}
    )
    assert subject == "Hi Ann"
    assert body == "<p>Ann /  / {{ spaced }}</p>"


def test_build_email_uses_template_and_defaults():
    email = notification_service.build_email(_message())

    assert email.subject == "New request: Bring coffee"
    assert "jane needs something carried to Nairobi" in email.body
    assert email.from_email == settings.EMAIL_FROM_ADDRESS
    assert email.to_name == "Helper"


def test_build_email_subject_override():
    email = notification_service.build_email(_message(subject="About {{postTitle}}"))
    assert email.subject == "About Bring coffee"


@pytest.mark.parametrize(
    "overrides",
    [{"to_email": ""}, {"template": "no_such_template"}],
)
def test_build_email_rejects_bad_messages(overrides):
    with pytest.raises(NotificationError):
        notification_service.build_email(_message(**overrides))


def test_every_status_template_renders():
    for name, template in notification_service.TEMPLATES.items():
        subject, body = notification_service.render_template(
            template["subject"], template["body"], {}
        )
        assert "{{" not in subject + body, name


def test_payload_round_trip_keys():
    payload = _message(from_email="ops@example.com").to_payload()
    assert set(payload) == {"template", "to_email", "to_name", "subject", "data", "from_email"}
    assert NotificationMessage.from_payload(payload) == _message(from_email="ops@example.com")


def test_post_data(db, make_post, test_user, test_org):
    post = make_post(test_user, test_org, title="Spices")
    data = notification_service.post_data(post)

    assert data["postTitle"] == "Spices"
    assert data["postURL"].endswith(f"/requests/{post.uuid}")
    assert data["postDestination"] == "Nairobi, Kenya"
    assert data["creatorNickname"] == test_user.nickname
    assert "providerNickname" not in data
    assert data["appName"] == settings.APP_NAME


# =============================================================================
# Sending and queueing
# =============================================================================

async def test_send_uses_process_sender(email_sender):
    await notification_service.send(_message())

    assert [e.to_email for e in email_sender.sent] == ["helper@example.com"]
    assert email_sender.sent_to("nobody@example.com") == []


async def test_send_with_explicit_sender():
    sender = DummyEmailSender()
    await notification_service.send(_message(), sender=sender)
    assert len(sender.sent) == 1


def test_queue_notification_schedules_job(db):
    job = notification_service.queue_notification(db, _message())

    assert job.job_type == JobType.SEND_NOTIFICATION.value
    assert job.status == JobStatus.PENDING.value
    assert job.payload["template"] == notification_service.TEMPLATE_NEW_REQUEST


def test_queue_notification_fails_fast(db):
    with pytest.raises(NotificationError):
        notification_service.queue_notification(db, _message(template="nope"))
    assert job_service.list_jobs(db) == []


async def test_send_notification_job(db, email_sender):
    job = notification_service.queue_notification(db, _message())

    await notifications.process_send_notification(db, job)

    assert email_sender.sent[0].subject == "New request: Bring coffee"


async def test_send_notification_job_requires_template(email_sender):
    job = SimpleNamespace(id=uuid4(), payload={"to_email": "a@example.com"})
    with pytest.raises(ValueError):
        await notifications.process_send_notification(None, job)
    assert email_sender.sent == []


# =============================================================================
# Sender selection
# =============================================================================

def test_build_sender_defaults_to_dummy(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "dummy", raising=False)
    assert isinstance(email_sender.build_sender(), DummyEmailSender)


def test_build_sender_resend_requires_key(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "resend", raising=False)
    monkeypatch.setattr(settings, "RESEND_API_KEY", "", raising=False)
    with pytest.raises(EmailSendError):
        email_sender.build_sender()

    monkeypatch.setattr(settings, "RESEND_API_KEY", "re_test", raising=False)
    sender = email_sender.build_sender()
    assert isinstance(sender, ResendEmailSender)
    assert sender.key == "resend"


def test_get_email_sender_is_cached(monkeypatch):
    monkeypatch.setattr(settings, "EMAIL_PROVIDER", "dummy", raising=False)
    email_sender.set_email_sender(None)
    assert email_sender.get_email_sender() is email_sender.get_email_sender()


def _mock_resend(monkeypatch, handler):
    real_client = httpx.AsyncClient

    def _client(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(email_sender.httpx, "AsyncClient", _client)


EMAIL = OutgoingEmail(
    to_email="to@example.com",
    to_name="To",
    from_email="from@example.com",
    subject="Hello",
    body="<p>Hi</p>",
)


async def test_resend_sender_posts_email(monkeypatch):
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email-1"})

    _mock_resend(monkeypatch, handler)

    await ResendEmailSender("re_test").send(EMAIL)

    assert captured["url"] == email_sender.RESEND_SEND_URL
    assert captured["auth"] == "Bearer re_test"
    assert captured["body"] == {
        "from": "from@example.com",
        "to": ["to@example.com"],
        "subject": "Hello",
        "html": "<p>Hi</p>",
    }


async def test_resend_sender_raises_on_rejection(monkeypatch):
    _mock_resend(monkeypatch, lambda request: httpx.Response(422, text="invalid from"))

    with pytest.raises(EmailSendError) as exc:
        await ResendEmailSender("re_test").send(EMAIL)
    assert "422" in str(exc.value)


async def test_resend_sender_wraps_transport_errors(monkeypatch):
    monkeypatch.setattr(email_sender, "RESEND_MAX_ATTEMPTS", 1)

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    _mock_resend(monkeypatch, handler)

    with pytest.raises(EmailSendError):
        await ResendEmailSender("re_test").send(EMAIL)
