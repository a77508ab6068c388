"""Me router - the caller's profile, preferences and posts."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wecarry.core.deps import get_current_user, get_db
from wecarry.db.enums import PostRole
from wecarry.routers.posts import to_post_read
from wecarry.schemas.auth import OrganizationOption
from wecarry.schemas.post import PostRead
from wecarry.schemas.user import MeRead, Preferences, ProfileUpdate
from wecarry.services import file_service, post_service, user_service
from wecarry.services.access_token_service import CurrentUser

router = APIRouter()


def to_me_read(db: Session, current: CurrentUser) -> MeRead:
    user = current.user
    photo_url = user.auth_photo_url
    if user.photo is not None:
        photo_url, _ = file_service.get_file_url(db, user.photo)
    return MeRead(
        id=user.uuid,
        email=user.email,
        nickname=user.nickname,
        first_name=user.first_name,
        last_name=user.last_name,
        admin_role=user.admin_role,
        photo_url=photo_url,
        location=user.location,
        preferences=user.preferences or {},
        organization=OrganizationOption(
            id=current.organization.uuid, name=current.organization.name
        ),
        organizations=[
            OrganizationOption(id=org.uuid, name=org.name)
            for org in user_service.get_organizations(db, user)
        ],
    )


@router.get("", response_model=MeRead)
def get_me(
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return to_me_read(db, current)


@router.get("/posts", response_model=list[PostRead])
def list_my_posts(
    role: PostRole = Query(PostRole.CREATEDBY),
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Posts the caller created, is providing, or is receiving."""
    posts = post_service.list_posts_for_user(db, current.user, role)
    return [to_post_read(db, current.user, post) for post in posts]


@router.patch("", response_model=MeRead)
def update_me(
    data: ProfileUpdate,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user_service.update_profile(
        db,
        current.user,
        nickname=data.nickname,
        location=data.location.model_dump() if data.location else None,
    )
    return to_me_read(db, current)


@router.put("/preferences", response_model=MeRead)
def update_preferences(
    data: Preferences,
    current: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Merge preferences; fields sent as null are cleared."""
    user_service.update_preferences(
        db, current.user, data.model_dump(exclude_unset=True)
    )
    return to_me_read(db, current)
