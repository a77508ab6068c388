"""
Watch service - saved post searches and matching new posts against them.

A watch matches a post when every criterion it sets matches. Owners only
hear about posts they are allowed to see.
"""

from __future__ import annotations

import logging
from uuid import UUID, uuid4

from sqlalchemy import or_
from sqlalchemy.orm import Session

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import PostSize
from wecarry.db.models import Location, Meeting, Post, User, Watch
from wecarry.schemas.watch import WatchCreate, WatchUpdate
from wecarry.services import post_service

logger = logging.getLogger(__name__)

# How far a post's destination may be from a watch's destination
WATCH_RADIUS_KM = 50.0

SIZE_ORDER = list(PostSize)


def validate_watch(watch: Watch) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    if not (watch.name or "").strip():
        errors["name"] = ["name is required"]
    if (
        watch.destination is None
        and watch.meeting_id is None
        and not (watch.search_text or "").strip()
        and watch.size is None
    ):
        errors["criteria"] = [
            "a watch needs at least one of destination, meeting_id, search_text or size"
        ]
    return errors


def _find_meeting(db: Session, meeting_uuid: UUID) -> Meeting:
    meeting = db.query(Meeting).filter(Meeting.uuid == meeting_uuid).first()
    if not meeting:
        raise NotFoundError("meeting", meeting_uuid)
    return meeting


# =============================================================================
# Queries
# =============================================================================

def list_watches(db: Session, user: User) -> list[Watch]:
    """The user's own watches, oldest first."""
    return (
        db.query(Watch)
        .filter(Watch.owner_id == user.id)
        .order_by(Watch.created_at, Watch.id)
        .all()
    )


def find_watch_by_uuid(db: Session, user: User, watch_uuid: UUID) -> Watch:
    watch = db.query(Watch).filter(Watch.uuid == watch_uuid).first()
    if not watch:
        raise NotFoundError("watch", watch_uuid)
    if watch.owner_id != user.id:
        raise AuthorizationError("watch belongs to another user")
    return watch


# =============================================================================
# Create / Update / Delete
# =============================================================================

def create_watch(db: Session, user: User, data: WatchCreate) -> Watch:
    watch = Watch(
        uuid=uuid4(),
        name=data.name.strip(),
        owner_id=user.id,
        search_text=(data.search_text or "").strip() or None,
        size=data.size.value if data.size else None,
    )
    if data.destination is not None:
        watch.destination = Location(**data.destination.model_dump())
    if data.meeting_id is not None:
        watch.meeting_id = _find_meeting(db, data.meeting_id).id

    errors = validate_watch(watch)
    if errors:
        raise ValidationError(errors)

    db.add(watch)
    db.commit()
    db.refresh(watch)
    logger.info("User %s created watch %s", user.uuid, watch.uuid)
    return watch


def update_watch(db: Session, user: User, watch: Watch, data: WatchUpdate) -> Watch:
    """Only fields present in the request change; an explicit null clears a criterion."""
    if watch.owner_id != user.id:
        raise AuthorizationError("watch belongs to another user")

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("name"):
        watch.name = data.name.strip()
    if "search_text" in update_data:
        watch.search_text = (data.search_text or "").strip() or None
    if "size" in update_data:
        watch.size = data.size.value if data.size else None
    if "meeting_id" in update_data:
        watch.meeting_id = _find_meeting(db, data.meeting_id).id if data.meeting_id else None

    if "destination" in update_data:
        old_destination = watch.destination
        watch.destination = (
            Location(**data.destination.model_dump()) if data.destination else None
        )
        if old_destination is not None:
            db.delete(old_destination)

    errors = validate_watch(watch)
    if errors:
        db.rollback()
        raise ValidationError(errors)

    db.commit()
    db.refresh(watch)
    return watch


def delete_watch(db: Session, user: User, watch: Watch) -> None:
    if watch.owner_id != user.id:
        raise AuthorizationError("watch belongs to another user")
    watch_uuid, destination = watch.uuid, watch.destination
    db.delete(watch)
    if destination is not None:
        db.delete(destination)
    db.commit()
    logger.info("User %s deleted watch %s", user.uuid, watch_uuid)


# =============================================================================
# Matching
# =============================================================================

def _destination_matches(watch: Watch, post: Post) -> bool:
    if post.destination is None:
        return False
    distance = watch.destination.distance_km(post.destination)
    if distance is not None:
        return distance <= WATCH_RADIUS_KM
    # No coordinates on one side; fall back to the place name
    return (
        watch.destination.description.strip().lower()
        == post.destination.description.strip().lower()
    )


def _size_matches(watch: Watch, post: Post) -> bool:
    """The post's item fits in the size the watcher can carry or wants."""
    return SIZE_ORDER.index(PostSize(post.size)) <= SIZE_ORDER.index(PostSize(watch.size))


def _text_matches(watch: Watch, post: Post) -> bool:
    needle = watch.search_text.lower()
    return needle in (post.title or "").lower() or needle in (post.description or "").lower()


def watch_matches_post(watch: Watch, post: Post) -> bool:
    if watch.meeting_id is not None and watch.meeting_id != post.meeting_id:
        return False
    if watch.destination is not None and not _destination_matches(watch, post):
        return False
    if watch.search_text and not _text_matches(watch, post):
        return False
    if watch.size is not None and not _size_matches(watch, post):
        return False
    return True


def find_matching_watches(db: Session, post: Post) -> list[Watch]:
    """
    One matching watch per owner, the owner's oldest.

    Watches of the post's creator and of users who may not see the post are
    left out.
    """
    watches = (
        db.query(Watch)
        .filter(
            Watch.owner_id != post.created_by_id,
            or_(Watch.meeting_id.is_(None), Watch.meeting_id == post.meeting_id),
        )
        .order_by(Watch.owner_id, Watch.created_at, Watch.id)
        .all()
    )
    matches: dict[int, Watch] = {}
    for watch in watches:
        if watch.owner_id in matches or not watch_matches_post(watch, post):
            continue
        if post_service.is_visible(db, watch.owner, post):
            matches[watch.owner_id] = watch
    return list(matches.values())
