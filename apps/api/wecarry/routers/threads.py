"""Threads router - the caller's message threads."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.models import Thread, User
from wecarry.schemas.message import LastViewedUpdate, MessageRead, ThreadRead
from wecarry.schemas.post import UserSummary
from wecarry.services import message_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


def _thread_read(db: Session, user: User, thread: Thread) -> ThreadRead:
    participant = message_service.get_participant(db, thread, user)
    return ThreadRead(
        id=thread.uuid,
        post_id=thread.post.uuid,
        post_title=thread.post.title,
        participants=[
            UserSummary(id=p.user.uuid, nickname=p.user.nickname) for p in thread.participants
        ],
        unread_message_count=message_service.unread_message_count(db, user, thread),
        last_viewed_at=participant.last_viewed_at if participant else None,
        updated_at=thread.updated_at,
    )


@router.get("", response_model=list[ThreadRead])
def list_threads(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [
        _thread_read(db, current.user, thread)
        for thread in message_service.list_threads_for_user(db, current.user)
    ]


@router.get("/{thread_id}/messages", response_model=list[MessageRead])
def list_messages(
    thread_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    thread = message_service.find_thread_by_uuid(db, current.user, thread_id)
    return [
        MessageRead(
            id=message.uuid,
            thread_id=thread.uuid,
            sender=UserSummary(id=message.sent_by.uuid, nickname=message.sent_by.nickname),
            content=message.content,
            created_at=message.created_at,
        )
        for message in message_service.list_messages(db, thread)
    ]


@router.put("/{thread_id}/last-viewed", response_model=ThreadRead)
def set_last_viewed(
    thread_id: UUID,
    data: LastViewedUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mark the thread as read up to data.time (default now)."""
    thread = message_service.find_thread_by_uuid(db, current.user, thread_id)
    message_service.set_last_viewed_at(db, current.user, thread, data.time)
    return _thread_read(db, current.user, thread)
