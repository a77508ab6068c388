"""User service - users, memberships, permissions and preferences."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.orm import Session

from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.db.enums import (
    EventKind,
    OrgRole,
    ROLES_CAN_CREATE_ORGANIZATION,
    SITE_ADMIN_ROLES,
    UserAdminRole,
)
from wecarry.db.models import Location, Organization, Post, User, UserOrganization
from wecarry.db.types import utcnow
from wecarry.events.outbox import emit_after_commit
from wecarry.events.types import Event, UserCreatedEventData

if TYPE_CHECKING:
    from wecarry.auth.base import AuthUser

logger = logging.getLogger(__name__)

WEIGHT_UNITS = {"kilograms", "pounds"}
PREFERENCE_KEYS = {"notifications_opt_out", "weight_unit", "max_distance_km"}


# =============================================================================
# Lookup
# =============================================================================

def get_user(db: Session, user_id: int) -> User | None:
    return db.query(User).filter(User.id == user_id).first()


def find_user_by_uuid(db: Session, user_uuid: UUID) -> User:
    user = db.query(User).filter(User.uuid == user_uuid).first()
    if not user:
        raise NotFoundError("user", user_uuid)
    return user


def get_user_org_ids(db: Session, user: User) -> list[int]:
    rows = (
        db.query(UserOrganization.organization_id)
        .filter(UserOrganization.user_id == user.id)
        .all()
    )
    return [row[0] for row in rows]


def get_membership(db: Session, user: User, org_id: int) -> UserOrganization | None:
    return (
        db.query(UserOrganization)
        .filter(
            UserOrganization.user_id == user.id,
            UserOrganization.organization_id == org_id,
        )
        .first()
    )


def list_org_members(db: Session, org_ids: list[int] | set[int]) -> list[User]:
    if not org_ids:
        return []
    return (
        db.query(User)
        .join(UserOrganization, UserOrganization.user_id == User.id)
        .filter(UserOrganization.organization_id.in_(list(org_ids)))
        .distinct()
        .order_by(User.id)
        .all()
    )


# =============================================================================
# Permissions
# =============================================================================

def is_site_admin(user: User) -> bool:
    return UserAdminRole.has_value(user.admin_role) and (
        UserAdminRole(user.admin_role) in SITE_ADMIN_ROLES
    )


def can_create_organization(user: User) -> bool:
    return UserAdminRole.has_value(user.admin_role) and (
        UserAdminRole(user.admin_role) in ROLES_CAN_CREATE_ORGANIZATION
    )


def is_org_admin(db: Session, user: User, org_id: int) -> bool:
    membership = get_membership(db, user, org_id)
    return membership is not None and membership.role == OrgRole.ADMIN.value


def can_edit_organization(db: Session, user: User, org_id: int) -> bool:
    return can_create_organization(user) or is_org_admin(db, user, org_id)


# =============================================================================
# Login
# =============================================================================

def _nickname_taken(db: Session, nickname: str, exclude_user_id: int | None) -> bool:
    query = db.query(User.id).filter(User.nickname == nickname)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    return query.first() is not None


def make_unique_nickname(
    db: Session, first_name: str, last_name: str, exclude_user_id: int | None = None
) -> str:
    """'First L', with a numeric suffix when already taken."""
    base = f"{first_name} {last_name[:1]}".strip() or "User"
    nickname = base
    suffix = 1
    while _nickname_taken(db, nickname, exclude_user_id):
        suffix += 1
        nickname = f"{base}{suffix}"
    return nickname


def find_or_create_from_auth_user(
    db: Session, org_id: int, auth_user: "AuthUser"
) -> tuple[User, bool]:
    """
    Resolve the local user for a completed provider login.

    Looks up the membership by auth email within the org, then the user by
    email. Creates the user and/or membership as needed and stamps last_login.
    Returns (user, is_new).
    """
    if not auth_user.email:
        raise ValidationError.single("email", "identity provider returned no email")

    membership = (
        db.query(UserOrganization)
        .filter(
            UserOrganization.organization_id == org_id,
            UserOrganization.auth_email == auth_user.email,
        )
        .first()
    )
    if membership and membership.auth_id != auth_user.auth_id:
        raise AuthorizationError(
            "a user in this organization with this email address already exists "
            "with different user id"
        )

    user = membership.user if membership else None
    if user is None:
        user = db.query(User).filter(User.email == auth_user.email).first()

    is_new = user is None
    if is_new:
        user = User(
            email=auth_user.email,
            first_name=auth_user.first_name,
            last_name=auth_user.last_name,
            nickname=make_unique_nickname(db, auth_user.first_name, auth_user.last_name),
            preferences={},
        )
        db.add(user)
        db.flush()
    else:
        user.first_name = auth_user.first_name or user.first_name
        user.last_name = auth_user.last_name or user.last_name

    if auth_user.photo_url:
        user.auth_photo_url = auth_user.photo_url

    if membership is None:
        membership = get_membership(db, user, org_id)
    if membership is None:
        membership = UserOrganization(
            organization_id=org_id,
            user_id=user.id,
            role=OrgRole.MEMBER.value,
            auth_id=auth_user.auth_id,
            auth_email=auth_user.email,
        )
        db.add(membership)
    membership.last_login = utcnow()

    if is_new:
        db.flush()
        emit_after_commit(
            db,
            Event(
                EventKind.USER_CREATED,
                UserCreatedEventData(user_id=user.id),
                message=f"Nickname: {user.nickname}  UUID: {user.uuid}",
            ),
        )
    db.commit()
    db.refresh(user)
    return user, is_new


# =============================================================================
# Profile and preferences
# =============================================================================

def validate_preferences(prefs: dict) -> dict[str, list[str]]:
    errors: dict[str, list[str]] = {}
    for key in prefs:
        if key not in PREFERENCE_KEYS:
            errors.setdefault(key, []).append("unknown preference")
    if "notifications_opt_out" in prefs and not isinstance(prefs["notifications_opt_out"], bool):
        errors.setdefault("notifications_opt_out", []).append("must be true or false")
    if "weight_unit" in prefs and prefs["weight_unit"] not in WEIGHT_UNITS:
        errors.setdefault("weight_unit", []).append(
            f"must be one of {', '.join(sorted(WEIGHT_UNITS))}"
        )
    if "max_distance_km" in prefs:
        value = prefs["max_distance_km"]
        if value is not None and (
            isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0
        ):
            errors.setdefault("max_distance_km", []).append("must be a positive number")
    return errors


def update_preferences(db: Session, user: User, prefs: dict) -> User:
    """Merge prefs into the user's preferences. A None value clears a key."""
    errors = validate_preferences(prefs)
    if errors:
        raise ValidationError(errors)

    merged = dict(user.preferences or {})
    for key, value in prefs.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    # Reassign so the JSON column is flagged dirty
    user.preferences = merged
    db.commit()
    db.refresh(user)
    return user


def update_profile(
    db: Session,
    user: User,
    *,
    nickname: str | None = None,
    location: dict | None = None,
) -> User:
    if nickname is not None:
        nickname = nickname.strip()
        if not nickname:
            raise ValidationError.single("nickname", "nickname must not be blank")
        if _nickname_taken(db, nickname, user.id):
            raise ValidationError.single("nickname", "nickname is already taken")
        user.nickname = nickname
    if location is not None:
        if user.location is None:
            user.location = Location(**location)
        else:
            for key, value in location.items():
                setattr(user.location, key, value)
    db.commit()
    db.refresh(user)
    return user


def wants_new_post_notification(user: User, post: Post) -> bool:
    """
    Audience filter for new-post emails.

    Excludes users who opted out, and users whose max_distance_km preference
    puts the post's destination out of range.
    """
    prefs = user.preferences or {}
    if prefs.get("notifications_opt_out"):
        return False
    max_distance = prefs.get("max_distance_km")
    if max_distance is None or user.location is None or post.destination is None:
        return True
    distance = user.location.distance_km(post.destination)
    return distance is None or distance <= max_distance


def get_organizations(db: Session, user: User) -> list[Organization]:
    return (
        db.query(Organization)
        .join(UserOrganization, UserOrganization.organization_id == Organization.id)
        .filter(UserOrganization.user_id == user.id)
        .order_by(Organization.name)
        .all()
    )
