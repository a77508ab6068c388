"""Tests for message threads and the delayed new-message email."""
from datetime import timedelta

import pytest

from wecarry.core.errors import NotFoundError, ValidationError
from wecarry.db.enums import EventKind, JobType
from wecarry.db.types import utcnow
from wecarry.jobs.handlers.thread_message import process_thread_message
from wecarry.services import job_service, message_service


@pytest.fixture
def creator(make_user, test_org):
    return make_user(test_org)


@pytest.fixture
def helper(make_user, test_org):
    return make_user(test_org)


@pytest.fixture
def post(make_post, creator, test_org):
    return make_post(creator, test_org)


def test_first_message_creates_thread(db, post, creator, helper, event_log):
    message = message_service.send_message(db, helper, post, "  I can carry it  ")

    assert message.content == "I can carry it"
    thread = message.thread
    assert thread.post_id == post.id
    assert sorted(p.user_id for p in thread.participants) == sorted([creator.id, helper.id])
    assert [e.kind for e in event_log] == [EventKind.MESSAGE_CREATED]
    assert event_log[0].data.message_id == message.id


def test_second_message_reuses_thread(db, post, helper):
    first = message_service.send_message(db, helper, post, "Hello")
    second = message_service.send_message(db, helper, post, "Anyone there?")
    assert first.thread_id == second.thread_id
    assert [m.id for m in message_service.list_messages(db, first.thread)] == [first.id, second.id]


def test_creator_replies_in_existing_thread(db, post, creator, helper):
    first = message_service.send_message(db, helper, post, "Hello")
    reply = message_service.send_message(db, creator, post, "Hi!", thread_uuid=first.thread.uuid)
    assert reply.thread_id == first.thread_id


def test_creator_needs_a_thread(db, post, creator):
    with pytest.raises(ValidationError) as exc:
        message_service.send_message(db, creator, post, "Hello?")
    assert exc.value.get("thread_id")


def test_outsider_cannot_use_someone_elses_thread(db, post, helper, make_user, test_org):
    first = message_service.send_message(db, helper, post, "Hello")
    with pytest.raises(NotFoundError):
        message_service.send_message(
            db, make_user(test_org), post, "Me too", thread_uuid=first.thread.uuid
        )


def test_empty_and_oversized_messages(db, post, helper):
    with pytest.raises(ValidationError):
        message_service.send_message(db, helper, post, "   ")
    with pytest.raises(ValidationError):
        message_service.send_message(db, helper, post, "x" * (message_service.MAX_MESSAGE_LENGTH + 1))


def test_invisible_post(db, post, make_user, other_org):
    with pytest.raises(NotFoundError):
        message_service.send_message(db, make_user(other_org), post, "Hello")


def test_unread_count_and_last_viewed(db, post, creator, helper):
    first = message_service.send_message(db, helper, post, "One")
    message_service.send_message(db, helper, post, "Two")
    thread = first.thread

    assert message_service.unread_message_count(db, creator, thread) == 2
    assert message_service.unread_message_count(db, helper, thread) == 0

    message_service.set_last_viewed_at(db, creator, thread)
    assert message_service.unread_message_count(db, creator, thread) == 0


def test_threads_for_user(db, post, creator, helper, make_user, test_org):
    other = make_user(test_org)
    message_service.send_message(db, helper, post, "Mine")
    message_service.send_message(db, other, post, "Also mine")

    assert len(message_service.list_threads_for_user(db, creator)) == 2
    assert len(message_service.list_threads_for_user(db, helper)) == 1
    found = message_service.find_thread_by_post_and_user(db, post.id, other.id)
    assert found is not None
    assert message_service.get_participant(db, found, helper) is None


# =============================================================================
# Delayed notification job
# =============================================================================

async def test_thread_job_emails_unseen_participants_once(db, post, creator, helper, email_sender):
    message = message_service.send_message(db, helper, post, "Can you meet at the airport?")
    job = job_service.schedule_job(db, JobType.THREAD_MESSAGE, {"message_id": message.id})

    await process_thread_message(db, job)

    assert [e.to_email for e in email_sender.sent] == [creator.email]
    assert "Can you meet at the airport?" in email_sender.sent[0].body

    await process_thread_message(db, job)
    assert len(email_sender.sent) == 1


async def test_thread_job_skips_participants_who_read_it(db, post, creator, helper, email_sender):
    message = message_service.send_message(db, helper, post, "Seen already")
    message_service.set_last_viewed_at(db, creator, message.thread, utcnow() + timedelta(seconds=1))
    job = job_service.schedule_job(db, JobType.THREAD_MESSAGE, {"message_id": message.id})

    await process_thread_message(db, job)

    assert email_sender.sent == []


async def test_thread_job_requires_message_id(db, email_sender):
    job = job_service.schedule_job(db, JobType.THREAD_MESSAGE, {})
    with pytest.raises(ValueError):
        await process_thread_message(db, job)


async def test_thread_job_tolerates_deleted_message(db, email_sender):
    job = job_service.schedule_job(db, JobType.THREAD_MESSAGE, {"message_id": 999})
    await process_thread_message(db, job)
    assert email_sender.sent == []


def test_mark_notified_sets_timestamp(db, post, creator, helper):
    message = message_service.send_message(db, helper, post, "Ping")
    participant = message_service.get_participant(db, message.thread, creator)
    message_service.mark_notified(db, participant)
    assert message_service.participants_to_notify(db, message) == []


def test_last_viewed_requires_participant(db, post, helper, make_user, test_org):
    message = message_service.send_message(db, helper, post, "Ping")
    with pytest.raises(NotFoundError):
        message_service.set_last_viewed_at(db, make_user(test_org), message.thread)
