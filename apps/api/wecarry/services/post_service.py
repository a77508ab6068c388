"""
Post service - post lifecycle, visibility and potential providers.

Status changes go through update_post_status only: it validates the edge,
checks who may make it, applies the side effects and writes PostHistory in
the same transaction. Events are emitted after commit.
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session, aliased

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.core.post_rules import (
    CREATOR_EDITABLE_STATES,
    allowed_next_statuses,
    is_forward_state,
    is_valid_transition,
)
from wecarry.db.enums import (
    DEFAULT_POST_VISIBILITY,
    EventKind,
    PostRole,
    PostStatus,
    PostType,
    PostVisibility,
)
from wecarry.db.models import (
    Location,
    Meeting,
    Organization,
    PotentialProvider,
    Post,
    PostHistory,
    Thread,
    ThreadParticipant,
    User,
)
from wecarry.events.outbox import emit_after_commit
from wecarry.events.types import (
    Event,
    PostCreatedEventData,
    PostStatusEventData,
    PotentialProviderEventData,
)
from wecarry.schemas.location import LocationInput
from wecarry.schemas.post import PostCreate, PostUpdate
from wecarry.services import file_service, trust_service, user_service

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "created_by_id",
    "type",
    "organization_id",
    "title",
    "size",
    "status",
    "uuid",
)

# Target statuses each party may move a post to
CREATOR_STATUSES = frozenset(
    {
        PostStatus.OPEN,
        PostStatus.ACCEPTED,
        PostStatus.RECEIVED,
        PostStatus.COMPLETED,
        PostStatus.REMOVED,
    }
)
PROVIDER_STATUSES = frozenset({PostStatus.COMMITTED, PostStatus.DELIVERED, PostStatus.OPEN})

POTENTIAL_PROVIDER_STATES = frozenset({PostStatus.OPEN, PostStatus.COMMITTED})


# =============================================================================
# Validation
# =============================================================================

def validate_post(post: Post) -> dict[str, list[str]]:
    """One error per missing required field."""
    errors: dict[str, list[str]] = {}
    for field in REQUIRED_FIELDS:
        value = getattr(post, field, None)
        if value is None or (isinstance(value, str) and not value.strip()):
            errors[field] = [f"{field} is required"]
    if post.needed_before and post.needed_after and post.needed_after > post.needed_before:
        errors.setdefault("needed_after", []).append(
            "needed_after must not be later than needed_before"
        )
    return errors


def _location_from_input(data: LocationInput) -> Location:
    return Location(**data.model_dump())


def _copy_location(location: Location) -> Location:
    return Location(
        description=location.description,
        country=location.country,
        latitude=location.latitude,
        longitude=location.longitude,
    )


def _find_meeting(db: Session, meeting_uuid: UUID) -> Meeting:
    meeting = db.query(Meeting).filter(Meeting.uuid == meeting_uuid).first()
    if not meeting:
        raise NotFoundError("meeting", meeting_uuid)
    return meeting


# =============================================================================
# Visibility
# =============================================================================

def _viewer_scope(db: Session, user: User) -> tuple[set[int], set[int]]:
    """(orgs the user belongs to, orgs trusted by any of them)."""
    org_ids = set(user_service.get_user_org_ids(db, user))
    trusted: set[int] = set()
    for org_id in org_ids:
        trusted |= trust_service.trusted_org_ids(db, org_id)
    return org_ids, trusted


def visibility_filter(db: Session, user: User):
    """SQL condition selecting the posts user may see."""
    org_ids, trusted = _viewer_scope(db, user)
    visible = [
        Post.visibility == PostVisibility.ALL.value,
        Post.created_by_id == user.id,
    ]
    if org_ids:
        visible.append(Post.organization_id.in_(org_ids))
    if trusted:
        visible.append(
            and_(
                Post.visibility == PostVisibility.TRUSTED.value,
                Post.organization_id.in_(trusted),
            )
        )
    return and_(
        or_(*visible),
        or_(Post.status != PostStatus.REMOVED.value, Post.created_by_id == user.id),
    )


def is_visible(db: Session, user: User, post: Post) -> bool:
    """
    Whether user may fetch post by uuid.

    A REMOVED post stays reachable for its creator and for the admins who may
    still edit it; listings hide it from everyone but the creator.
    """
    if post.created_by_id == user.id:
        return True
    if post.status == PostStatus.REMOVED.value:
        return user_service.is_site_admin(user) or user_service.is_org_admin(
            db, user, post.organization_id
        )
    if post.visibility == PostVisibility.ALL.value:
        return True
    org_ids, trusted = _viewer_scope(db, user)
    if post.organization_id in org_ids:
        return True
    return post.visibility == PostVisibility.TRUSTED.value and post.organization_id in trusted


def find_post_by_uuid(db: Session, user: User, post_uuid: UUID) -> Post:
    """Post by uuid, or NotFoundError when missing or not visible to user."""
    post = db.query(Post).filter(Post.uuid == post_uuid).first()
    if not post or not is_visible(db, user, post):
        raise NotFoundError("post", post_uuid)
    return post


def get_post(db: Session, post_id: int) -> Post | None:
    return db.query(Post).filter(Post.id == post_id).first()


def list_posts(
    db: Session,
    user: User,
    *,
    post_type: PostType | None = None,
    search: str | None = None,
    destination: str | None = None,
    origin: str | None = None,
    meeting_id: int | None = None,
    limit: int = 200,
) -> list[Post]:
    """Posts visible to user, newest first."""
    query = db.query(Post).filter(visibility_filter(db, user))
    if post_type:
        query = query.filter(Post.type == post_type.value)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(Post.title.ilike(pattern), Post.description.ilike(pattern))
        )
    if destination:
        dest = aliased(Location)
        pattern = f"%{destination.strip()}%"
        query = query.join(dest, Post.destination_id == dest.id).filter(
            or_(dest.description.ilike(pattern), dest.country.ilike(destination.strip()))
        )
    if origin:
        orig = aliased(Location)
        pattern = f"%{origin.strip()}%"
        query = query.join(orig, Post.origin_id == orig.id).filter(
            or_(orig.description.ilike(pattern), orig.country.ilike(origin.strip()))
        )
    if meeting_id is not None:
        query = query.filter(Post.meeting_id == meeting_id)
    return query.order_by(Post.created_at.desc(), Post.id.desc()).limit(limit).all()


ROLE_COLUMNS = {
    PostRole.CREATEDBY: Post.created_by_id,
    PostRole.PROVIDING: Post.provider_id,
    PostRole.RECEIVING: Post.receiver_id,
}


def list_posts_for_user(db: Session, user: User, role: PostRole) -> list[Post]:
    """
    Posts user created, is providing or is receiving, newest first.

    As in list_posts, REMOVED posts are only listed for their creator.
    """
    role = PostRole(role)
    query = db.query(Post).filter(ROLE_COLUMNS[role] == user.id)
    if role != PostRole.CREATEDBY:
        query = query.filter(Post.status != PostStatus.REMOVED.value)
    return query.order_by(Post.created_at.desc(), Post.id.desc()).all()


def get_audience(db: Session, post: Post) -> list[User]:
    """
    Users to tell about a new post.

    Members of the post's org and of every org it trusts, filtered by each
    user's notification preferences. The creator is never included.
    """
    org_ids = {post.organization_id} | trust_service.trusted_org_ids(db, post.organization_id)
    return [
        user
        for user in user_service.list_org_members(db, org_ids)
        if user.id != post.created_by_id and user_service.wants_new_post_notification(user, post)
    ]


# =============================================================================
# Permissions
# =============================================================================

def is_editable(db: Session, user: User, post: Post) -> bool:
    if user_service.is_site_admin(user):
        return True
    if user_service.is_org_admin(db, user, post.organization_id):
        return True
    if user.id == post.created_by_id:
        return PostStatus(post.status) in CREATOR_EDITABLE_STATES
    return False


def can_update_status(db: Session, user: User, post: Post, new_status: PostStatus) -> bool:
    new_status = PostStatus(new_status)
    if user_service.is_site_admin(user):
        return True
    if user.id == post.created_by_id:
        return new_status in CREATOR_STATUSES
    if new_status == PostStatus.COMMITTED:
        return True
    if post.provider_id == user.id:
        return new_status in PROVIDER_STATUSES
    return False


def allowed_statuses_for(db: Session, user: User, post: Post) -> list[PostStatus]:
    """Next statuses user could move post to right now."""
    return [
        status
        for status in allowed_next_statuses(post.status)
        if can_update_status(db, user, post, status)
    ]


# =============================================================================
# Create / Update
# =============================================================================

def create_post(db: Session, user: User, data: PostCreate) -> Post:
    """Create a post in OPEN status and write its first history row."""
    errors = ValidationError()

    org = None
    if data.organization_id is None:
        errors.add("organization_id", "organization is required")
    else:
        org = db.query(Organization).filter(Organization.uuid == data.organization_id).first()
        if org is None:
            raise NotFoundError("organization", data.organization_id)
        if org.id not in user_service.get_user_org_ids(db, user):
            raise AuthorizationError("user is not a member of the post's organization")

    if data.status is not None and data.status != PostStatus.OPEN:
        errors.add("create_status", "a new post must have status OPEN")

    destination = None
    meeting = None
    if data.meeting_id is not None:
        meeting = _find_meeting(db, data.meeting_id)
        destination = _copy_location(meeting.location)
    elif data.destination is not None:
        destination = _location_from_input(data.destination)
    else:
        errors.add("destination", "destination is required")

    post = Post(
        uuid=uuid4(),
        type=data.type.value if data.type else None,
        status=PostStatus.OPEN.value,
        title=data.title,
        description=data.description,
        size=data.size.value if data.size else None,
        url=data.url,
        kilograms=data.kilograms,
        needed_before=data.needed_before,
        needed_after=data.needed_after,
        visibility=(data.visibility or DEFAULT_POST_VISIBILITY).value,
        created_by_id=user.id,
        organization_id=org.id if org else None,
        meeting_id=meeting.id if meeting else None,
    )
    for field, messages in validate_post(post).items():
        for message in messages:
            errors.add(field, message)
    if errors.has_any():
        raise errors

    post.destination = destination
    if data.origin is not None:
        post.origin = _location_from_input(data.origin)
    if data.photo_id is not None:
        post.photo_file_id = file_service.attach_file(db, data.photo_id).id

    db.add(post)
    db.flush()
    _append_history(db, post, None, PostStatus.OPEN, user, None, None)
    emit_after_commit(
        db,
        Event(
            EventKind.POST_CREATED,
            PostCreatedEventData(post_id=post.id),
            message=f"Post created: {post.uuid}",
        ),
    )
    db.commit()
    db.refresh(post)
    logger.info("Created %s post %s", post.type, post.uuid)
    return post


def update_post(db: Session, user: User, post: Post, data: PostUpdate) -> Post:
    """
    Update post fields.

    Uses exclude_unset=True so only explicitly provided fields are updated,
    except origin, which is removed when not provided.
    """
    if not is_editable(db, user, post):
        raise AuthorizationError("attempt to update a non-editable post")

    update_data = data.model_dump(exclude_unset=True)
    clearable_fields = {"description", "url", "kilograms", "needed_before", "needed_after"}
    simple_fields = clearable_fields | {"title", "size", "visibility"}

    for field in simple_fields & update_data.keys():
        value = update_data[field]
        if value is None and field not in clearable_fields:
            continue
        if field in ("size", "visibility"):
            value = getattr(data, field).value
        setattr(post, field, value)

    if update_data.get("meeting_id"):
        meeting = _find_meeting(db, data.meeting_id)
        post.meeting_id = meeting.id
        _replace_destination(post, _copy_location(meeting.location))
    elif "meeting_id" in update_data:
        post.meeting_id = None

    if data.destination is not None:
        _replace_destination(post, _location_from_input(data.destination))

    if data.origin is None:
        if post.origin is not None:
            old_origin = post.origin
            post.origin = None
            db.delete(old_origin)
    elif post.origin is None:
        post.origin = _location_from_input(data.origin)
    else:
        for key, value in data.origin.model_dump().items():
            setattr(post.origin, key, value)

    if "photo_id" in update_data:
        if post.photo is not None:
            file_service.detach_file(db, post.photo)
        post.photo_file_id = (
            file_service.attach_file(db, data.photo_id).id if data.photo_id else None
        )

    errors = validate_post(post)
    if errors:
        db.rollback()
        raise ValidationError(errors)

    db.commit()
    db.refresh(post)
    return post


def _replace_destination(post: Post, location: Location) -> None:
    if post.destination is None:
        post.destination = location
        return
    for key in ("description", "country", "latitude", "longitude"):
        setattr(post.destination, key, getattr(location, key))


# =============================================================================
# Status
# =============================================================================

def _append_history(
    db: Session,
    post: Post,
    from_status: PostStatus | None,
    status: PostStatus,
    user: User | None,
    provider_id: int | None,
    receiver_id: int | None,
) -> PostHistory:
    history = PostHistory(
        post_id=post.id,
        from_status=from_status.value if from_status else None,
        status=status.value,
        changed_by_id=user.id if user else None,
        provider_id=provider_id,
        receiver_id=receiver_id,
    )
    db.add(history)
    return history


def update_post_status(
    db: Session,
    user: User,
    post: Post,
    new_status: PostStatus,
    *,
    provider_id: int | None = None,
) -> Post:
    """
    Move post to new_status.

    Edge validity is checked before permission. A same-status update is a
    no-op: no history row and no event.
    """
    new_status = PostStatus(new_status)
    old_status = PostStatus(post.status)

    if not is_valid_transition(old_status, new_status):
        raise ValidationError.single(
            "status",
            f"invalid status transition from {old_status.value} to {new_status.value}",
        )
    if not can_update_status(db, user, post, new_status):
        raise AuthorizationError(
            f"user {user.id} may not set post {post.id} to {new_status.value}"
        )
    if old_status == new_status:
        return post

    old_provider_id = post.provider_id
    old_receiver_id = post.receiver_id

    if new_status == PostStatus.COMMITTED and user.id != post.created_by_id:
        post.provider_id = user.id
        _ensure_potential_provider(db, post, user.id)

    elif new_status == PostStatus.ACCEPTED:
        if provider_id is not None and provider_id != post.provider_id:
            if not _is_potential_provider(db, post, provider_id):
                raise ValidationError.single(
                    "provider_id", "provider must be one of the post's potential providers"
                )
        post.provider_id = provider_id or post.provider_id or user.id

    elif new_status == PostStatus.OPEN and is_forward_state(old_status):
        post.provider_id = None
        post.receiver_id = None
        db.query(PotentialProvider).filter(PotentialProvider.post_id == post.id).delete(
            synchronize_session=False
        )

    elif new_status == PostStatus.RECEIVED:
        if post.type == PostType.REQUEST.value and post.receiver_id is None:
            post.receiver_id = post.created_by_id

    post.status = new_status.value
    _append_history(db, post, old_status, new_status, user, old_provider_id, old_receiver_id)
    emit_after_commit(
        db,
        Event(
            EventKind.POST_STATUS_UPDATED,
            PostStatusEventData(
                post_id=post.id,
                old_status=old_status,
                new_status=new_status,
                old_provider_id=old_provider_id,
                old_receiver_id=old_receiver_id,
            ),
            message=f"Status changed {old_status.value} -> {new_status.value}",
        ),
    )
    db.commit()
    db.refresh(post)
    logger.info(
        "Post %s status %s -> %s", post.uuid, old_status.value, new_status.value
    )
    return post


def get_post_history(db: Session, post: Post) -> list[PostHistory]:
    return (
        db.query(PostHistory)
        .filter(PostHistory.post_id == post.id)
        .order_by(PostHistory.id)
        .all()
    )


def get_thread_id_for_user(db: Session, post: Post, user: User) -> UUID | None:
    """Uuid of the thread about post that user takes part in, if any."""
    thread = (
        db.query(Thread)
        .join(ThreadParticipant, ThreadParticipant.thread_id == Thread.id)
        .filter(Thread.post_id == post.id, ThreadParticipant.user_id == user.id)
        .order_by(Thread.id)
        .first()
    )
    return thread.uuid if thread else None


# =============================================================================
# Potential providers
# =============================================================================

def _find_potential_provider(db: Session, post: Post, user_id: int) -> PotentialProvider | None:
    return (
        db.query(PotentialProvider)
        .filter(PotentialProvider.post_id == post.id, PotentialProvider.user_id == user_id)
        .first()
    )


def _is_potential_provider(db: Session, post: Post, user_id: int) -> bool:
    return _find_potential_provider(db, post, user_id) is not None


def _ensure_potential_provider(db: Session, post: Post, user_id: int) -> PotentialProvider:
    existing = _find_potential_provider(db, post, user_id)
    if existing:
        return existing
    row = PotentialProvider(post_id=post.id, user_id=user_id)
    db.add(row)
    return row


def add_potential_provider(db: Session, user: User, post: Post) -> PotentialProvider:
    """Offer to fulfil post. Idempotent per (post, user)."""
    if user.id == post.created_by_id:
        raise ValidationError.single(
            "user_id", "Potential provider must not be the post's creator"
        )
    if PostStatus(post.status) not in POTENTIAL_PROVIDER_STATES:
        raise ValidationError.single(
            "status", "potential providers can only be added to OPEN or COMMITTED posts"
        )

    existing = _find_potential_provider(db, post, user.id)
    if existing:
        return existing

    row = PotentialProvider(post_id=post.id, user_id=user.id)
    db.add(row)
    emit_after_commit(
        db,
        Event(
            EventKind.POTENTIAL_PROVIDER_CREATED,
            PotentialProviderEventData(post_id=post.id, user_id=user.id),
            message=f"Potential provider {user.uuid} added to post {post.uuid}",
        ),
    )
    db.commit()
    db.refresh(row)
    return row


def remove_potential_provider(
    db: Session, user: User, post: Post, provider_user_id: int
) -> None:
    """
    Remove a potential provider.

    Providers may withdraw themselves; the creator may reject anyone.
    """
    row = _find_potential_provider(db, post, provider_user_id)
    if row is None:
        raise NotFoundError("potential provider")

    if user.id == provider_user_id:
        kind = EventKind.POTENTIAL_PROVIDER_SELF_DESTROYED
    elif user.id == post.created_by_id:
        kind = EventKind.POTENTIAL_PROVIDER_REJECTED
    else:
        raise AuthorizationError("only the creator or the provider may remove a potential provider")

    db.delete(row)
    emit_after_commit(
        db,
        Event(
            kind,
            PotentialProviderEventData(post_id=post.id, user_id=provider_user_id),
            message=f"Potential provider {provider_user_id} removed from post {post.uuid}",
        ),
    )
    db.commit()


def list_potential_providers(db: Session, user: User, post: Post) -> list[PotentialProvider]:
    """All rows for the creator and admins; otherwise only the caller's own."""
    query = db.query(PotentialProvider).filter(PotentialProvider.post_id == post.id)
    sees_all = (
        user.id == post.created_by_id
        or user_service.is_site_admin(user)
        or user_service.is_org_admin(db, user, post.organization_id)
    )
    if not sees_all:
        query = query.filter(PotentialProvider.user_id == user.id)
    return query.order_by(PotentialProvider.id).all()
