"""Posts router - requests and offers, their status, providers and messages."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.enums import PostType
from wecarry.db.models import Post, User
from wecarry.schemas.message import MessageCreate, MessageRead
from wecarry.schemas.post import (
    PostCreate,
    PostHistoryRead,
    PostRead,
    PostStatusUpdate,
    PostUpdate,
    PotentialProviderRead,
    UserSummary,
)
from wecarry.services import message_service, meeting_service, post_service, user_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


def _summary(user: User | None) -> UserSummary | None:
    if user is None:
        return None
    return UserSummary(id=user.uuid, nickname=user.nickname)


def _user_uuid(db: Session, user_id: int | None) -> UUID | None:
    if user_id is None:
        return None
    user = user_service.get_user(db, user_id)
    return user.uuid if user else None


def to_post_read(db: Session, user: User, post: Post) -> PostRead:
    return PostRead(
        id=post.uuid,
        type=post.type,
        status=post.status,
        title=post.title,
        description=post.description,
        size=post.size,
        url=post.url,
        kilograms=post.kilograms,
        needed_before=post.needed_before,
        needed_after=post.needed_after,
        visibility=post.visibility,
        organization_id=post.organization.uuid,
        created_by=_summary(post.created_by),
        provider=_summary(post.provider),
        receiver=_summary(post.receiver),
        destination=post.destination,
        origin=post.origin,
        meeting_id=post.meeting.uuid if post.meeting else None,
        photo_id=post.photo.uuid if post.photo else None,
        is_editable=post_service.is_editable(db, user, post),
        allowed_statuses=post_service.allowed_statuses_for(db, user, post),
        thread_id=post_service.get_thread_id_for_user(db, post, user),
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


@router.get("", response_model=list[PostRead])
def list_posts(
    type: PostType | None = None,
    search: str | None = Query(None, max_length=255),
    destination: str | None = Query(None, max_length=255),
    origin: str | None = Query(None, max_length=255),
    meeting_id: UUID | None = None,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List posts visible to the caller, newest first."""
    meeting_pk = None
    if meeting_id is not None:
        meeting_pk = meeting_service.find_meeting_by_uuid(db, meeting_id).id
    posts = post_service.list_posts(
        db,
        current.user,
        post_type=type,
        search=search,
        destination=destination,
        origin=origin,
        meeting_id=meeting_pk,
    )
    return [to_post_read(db, current.user, post) for post in posts]


@router.post("", response_model=PostRead, status_code=201)
def create_post(
    data: PostCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.create_post(db, current.user, data)
    return to_post_read(db, current.user, post)


@router.get("/{post_id}", response_model=PostRead)
def get_post(
    post_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    return to_post_read(db, current.user, post)


@router.patch("/{post_id}", response_model=PostRead)
def update_post(
    post_id: UUID,
    data: PostUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    post = post_service.update_post(db, current.user, post, data)
    return to_post_read(db, current.user, post)


@router.put("/{post_id}/status", response_model=PostRead)
def update_post_status(
    post_id: UUID,
    data: PostStatusUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Change a post's status.

    provider_id picks which potential provider is accepted (ACCEPTED only).
    """
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    provider_pk = None
    if data.provider_id is not None:
        provider_pk = user_service.find_user_by_uuid(db, data.provider_id).id
    post = post_service.update_post_status(
        db, current.user, post, data.status, provider_id=provider_pk
    )
    return to_post_read(db, current.user, post)


@router.get("/{post_id}/history", response_model=list[PostHistoryRead])
def get_post_history(
    post_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    return [
        PostHistoryRead(
            from_status=row.from_status,
            status=row.status,
            changed_by_id=_user_uuid(db, row.changed_by_id),
            provider_id=_user_uuid(db, row.provider_id),
            receiver_id=_user_uuid(db, row.receiver_id),
            created_at=row.created_at,
        )
        for row in post_service.get_post_history(db, post)
    ]


# =============================================================================
# Potential providers
# =============================================================================

@router.get("/{post_id}/potential-providers", response_model=list[PotentialProviderRead])
def list_potential_providers(
    post_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    return [
        PotentialProviderRead(user=_summary(row.user), created_at=row.created_at)
        for row in post_service.list_potential_providers(db, current.user, post)
    ]


@router.post(
    "/{post_id}/potential-providers",
    response_model=PotentialProviderRead,
    status_code=201,
)
def add_potential_provider(
    post_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Offer to fulfil the post as the caller."""
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    row = post_service.add_potential_provider(db, current.user, post)
    return PotentialProviderRead(user=_summary(row.user), created_at=row.created_at)


@router.delete("/{post_id}/potential-providers/{user_id}", status_code=204)
def remove_potential_provider(
    post_id: UUID,
    user_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    provider = user_service.find_user_by_uuid(db, user_id)
    post_service.remove_potential_provider(db, current.user, post, provider.id)


# =============================================================================
# Messages
# =============================================================================

@router.post("/{post_id}/messages", response_model=MessageRead, status_code=201)
def send_message(
    post_id: UUID,
    data: MessageCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    post = post_service.find_post_by_uuid(db, current.user, post_id)
    message = message_service.send_message(
        db, current.user, post, data.content, thread_uuid=data.thread_id
    )
    return MessageRead(
        id=message.uuid,
        thread_id=message.thread.uuid,
        sender=_summary(message.sent_by),
        content=message.content,
        created_at=message.created_at,
    )
