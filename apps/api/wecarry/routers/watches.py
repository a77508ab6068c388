"""Watches router - the caller's saved post searches."""

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.models import Watch
from wecarry.schemas.watch import WatchCreate, WatchOwner, WatchRead, WatchUpdate
from wecarry.services import file_service, watch_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


def to_watch_read(db: Session, watch: Watch) -> WatchRead:
    owner = watch.owner
    avatar_url = owner.auth_photo_url
    if owner.photo is not None:
        avatar_url, _ = file_service.get_file_url(db, owner.photo)
    return WatchRead(
        id=watch.uuid,
        name=watch.name,
        owner=WatchOwner(id=owner.uuid, nickname=owner.nickname, avatar_url=avatar_url),
        destination=watch.destination,
        meeting_id=watch.meeting.uuid if watch.meeting else None,
        search_text=watch.search_text,
        size=watch.size,
        created_at=watch.created_at,
    )


@router.get("", response_model=list[WatchRead])
def list_watches(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [to_watch_read(db, w) for w in watch_service.list_watches(db, current.user)]


@router.post("", response_model=WatchRead, status_code=201)
def create_watch(
    data: WatchCreate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    watch = watch_service.create_watch(db, current.user, data)
    return to_watch_read(db, watch)


@router.get("/{watch_id}", response_model=WatchRead)
def get_watch(
    watch_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_watch_read(db, watch_service.find_watch_by_uuid(db, current.user, watch_id))


@router.patch("/{watch_id}", response_model=WatchRead)
def update_watch(
    watch_id: UUID,
    data: WatchUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    watch = watch_service.find_watch_by_uuid(db, current.user, watch_id)
    watch = watch_service.update_watch(db, current.user, watch, data)
    return to_watch_read(db, watch)


@router.delete("/{watch_id}", status_code=204)
def delete_watch(
    watch_id: UUID,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    watch = watch_service.find_watch_by_uuid(db, current.user, watch_id)
    watch_service.delete_watch(db, current.user, watch)
