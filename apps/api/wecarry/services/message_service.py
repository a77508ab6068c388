"""Message service - threads between a post's creator and other users."""

import logging
from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import EventKind
from wecarry.db.models import Message, Post, Thread, ThreadParticipant, User
from wecarry.db.types import utcnow
from wecarry.events.outbox import emit_after_commit
from wecarry.events.types import Event, MessageEventData
from wecarry.services import notification_service, post_service

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4096

# last_viewed_at for participants who have not opened a thread yet
NEVER_VIEWED = datetime(1970, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Threads
# =============================================================================

def find_thread_by_uuid(db: Session, user: User, thread_uuid: UUID) -> Thread:
    """Thread by uuid; NotFoundError unless user takes part in it."""
    thread = (
        db.query(Thread)
        .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
        .filter(Thread.uuid == thread_uuid, ThreadParticipant.user_id == user.id)
        .first()
    )
    if not thread:
        raise NotFoundError("thread", thread_uuid)
    return thread


def find_thread_by_post_and_user(db: Session, post_id: int, user_id: int) -> Thread | None:
    if not post_id or not user_id:
        raise ValidationError.single("post_id", "post and user must be given")
    return (
        db.query(Thread)
        .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
        .filter(Thread.post_id == post_id, ThreadParticipant.user_id == user_id)
        .order_by(Thread.id)
        .first()
    )


def get_participant(db: Session, thread: Thread, user: User) -> ThreadParticipant | None:
    return (
        db.query(ThreadParticipant)
        .filter(ThreadParticipant.thread_id == thread.id, ThreadParticipant.user_id == user.id)
        .first()
    )


def list_threads_for_user(db: Session, user: User) -> list[Thread]:
    """Threads user takes part in, most recently active first."""
    return (
        db.query(Thread)
        .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
        .filter(ThreadParticipant.user_id == user.id)
        .order_by(Thread.updated_at.desc(), Thread.id.desc())
        .all()
    )


def list_messages(db: Session, thread: Thread) -> list[Message]:
    return (
        db.query(Message)
        .filter(Message.thread_id == thread.id)
        .order_by(Message.created_at, Message.id)
        .all()
    )


def _create_thread(db: Session, post: Post, sender_id: int, other_ids: list[int]) -> Thread:
    thread = Thread(uuid=uuid4(), post_id=post.id)
    db.add(thread)
    db.flush()
    db.add(ThreadParticipant(thread_id=thread.id, user_id=sender_id))
    for user_id in dict.fromkeys(other_ids):
        if user_id != sender_id:
            db.add(
                ThreadParticipant(thread_id=thread.id, user_id=user_id, last_viewed_at=NEVER_VIEWED)
            )
    db.flush()
    return thread


# =============================================================================
# Messages
# =============================================================================

def send_message(
    db: Session,
    user: User,
    post: Post,
    content: str,
    thread_uuid: UUID | None = None,
) -> Message:
    """
    Post a message about post.

    Without thread_uuid the sender's thread for the post is used, created on
    first message with the sender and the post creator as participants.
    """
    content = (content or "").strip()
    if not content:
        raise ValidationError.single("content", "message must not be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError.single("content", f"message exceeds {MAX_MESSAGE_LENGTH} characters")
    if not post_service.is_visible(db, user, post):
        raise NotFoundError("post", post.uuid)

    now = utcnow()
    if thread_uuid is not None:
        thread = find_thread_by_uuid(db, user, thread_uuid)
        if thread.post_id != post.id:
            raise ValidationError.single("thread_id", "thread belongs to another post")
    else:
        thread = find_thread_by_post_and_user(db, post.id, user.id)
        if thread is None:
            if user.id == post.created_by_id:
                raise ValidationError.single(
                    "thread_id", "the post creator must reply in an existing thread"
                )
            thread = _create_thread(db, post, user.id, [post.created_by_id])

    participant = get_participant(db, thread, user)
    if participant is None:
        raise AuthorizationError("user is not a participant of this thread")

    message = Message(
        uuid=uuid4(),
        thread_id=thread.id,
        sent_by_id=user.id,
        content=content,
        created_at=now,
    )
    db.add(message)
    participant.last_viewed_at = now
    thread.updated_at = now
    db.flush()
    emit_after_commit(
        db,
        Event(
            EventKind.MESSAGE_CREATED,
            MessageEventData(message_id=message.id),
            message=f"Message created in thread {thread.uuid}",
        ),
    )
    db.commit()
    db.refresh(message)
    return message


def set_last_viewed_at(db: Session, user: User, thread: Thread, when: datetime | None = None) -> ThreadParticipant:
    participant = get_participant(db, thread, user)
    if participant is None:
        raise NotFoundError("thread participant")
    participant.last_viewed_at = when or utcnow()
    db.commit()
    db.refresh(participant)
    return participant


def unread_message_count(db: Session, user: User, thread: Thread) -> int:
    """Messages from others created after user last viewed thread."""
    participant = get_participant(db, thread, user)
    if participant is None:
        return 0
    return (
        db.query(func.count(Message.id))
        .filter(
            Message.thread_id == thread.id,
            Message.sent_by_id != user.id,
            Message.created_at > participant.last_viewed_at,
        )
        .scalar()
        or 0
    )


def get_message(db: Session, message_id: int) -> Message | None:
    return db.query(Message).filter(Message.id == message_id).first()


# =============================================================================
# Delayed new-message notification
# =============================================================================

def participants_to_notify(db: Session, message: Message) -> list[ThreadParticipant]:
    """
    Participants who should hear about message.

    Excludes the sender and anyone who viewed the thread or was already
    notified after the message was created.
    """
    participants = (
        db.query(ThreadParticipant)
        .filter(
            ThreadParticipant.thread_id == message.thread_id,
            ThreadParticipant.user_id != message.sent_by_id,
        )
        .order_by(ThreadParticipant.id)
        .all()
    )
    due = []
    for participant in participants:
        if participant.last_viewed_at >= message.created_at:
            continue
        if participant.last_notified_at and participant.last_notified_at >= message.created_at:
            continue
        due.append(participant)
    return due


def build_new_message_notification(
    message: Message, recipient: User
) -> notification_service.NotificationMessage:
    thread = message.thread
    data = notification_service.post_data(thread.post)
    data.update(
        {
            "senderNickname": message.sent_by.nickname,
            "messageContent": message.content,
            "threadURL": f"{settings.UI_URL.rstrip('/')}/messages/{thread.uuid}",
        }
    )
    return notification_service.message_for_user(
        notification_service.TEMPLATE_NEW_THREAD_MESSAGE, recipient, data
    )


def mark_notified(db: Session, participant: ThreadParticipant, when: datetime | None = None) -> None:
    participant.last_notified_at = when or utcnow()
    db.commit()
