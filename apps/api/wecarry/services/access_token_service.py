"""Access token service - bearer tokens issued at login."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.core.security import generate_access_token, hash_access_token, hash_bearer_token
from wecarry.db.models import Organization, User, UserAccessToken, UserOrganization
from wecarry.db.types import utcnow
from wecarry.services import user_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    """Identity resolved from a bearer token."""

    user: User
    organization: Organization
    user_organization: UserOrganization
    token: UserAccessToken


def _expiry() -> datetime:
    return utcnow() + timedelta(seconds=settings.ACCESS_TOKEN_LIFETIME_SECONDS)


def create_access_token(
    db: Session, user: User, org: Organization, client_id: str
) -> tuple[str, datetime]:
    """
    Issue a new access token for (user, org).

    Any earlier token for the same pair is replaced. Returns the raw token
    (never stored) and its expiry.
    """
    if not client_id:
        raise ValidationError.single(
            "client_id", f"cannot create token with empty client_id for user {user.nickname}"
        )
    membership = user_service.get_membership(db, user, org.id)
    if membership is None:
        raise NotFoundError("user organization")

    db.query(UserAccessToken).filter(
        UserAccessToken.user_organization_id == membership.id
    ).delete(synchronize_session=False)

    raw_token = generate_access_token()
    expires_at = _expiry()
    db.add(
        UserAccessToken(
            user_id=user.id,
            user_organization_id=membership.id,
            access_token=hash_access_token(client_id, raw_token),
            expires_at=expires_at,
        )
    )
    db.commit()
    return raw_token, expires_at


def find_by_bearer_token(db: Session, bearer: str) -> UserAccessToken:
    """
    Look up a token by its bearer value (client_id + token).

    An expired token is deleted and reported as an AuthorizationError.
    """
    if not bearer:
        raise NotFoundError("access token")
    token = (
        db.query(UserAccessToken)
        .filter(UserAccessToken.access_token == hash_bearer_token(bearer))
        .first()
    )
    if token is None:
        raise NotFoundError("access token")
    if token.expires_at <= utcnow():
        db.delete(token)
        db.commit()
        raise AuthorizationError("expired bearer token")
    return token


def renew(db: Session, token: UserAccessToken) -> UserAccessToken:
    token.expires_at = _expiry()
    db.commit()
    db.refresh(token)
    return token


def delete_by_bearer_token(db: Session, bearer: str) -> bool:
    deleted = (
        db.query(UserAccessToken)
        .filter(UserAccessToken.access_token == hash_bearer_token(bearer))
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted > 0


def delete_expired(db: Session) -> int:
    """Delete all expired tokens. Returns the count."""
    deleted = (
        db.query(UserAccessToken)
        .filter(UserAccessToken.expires_at < utcnow())
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


def resolve_bearer_token(db: Session, bearer: str) -> CurrentUser:
    """Identity for a request: user, active org and membership."""
    token = find_by_bearer_token(db, bearer)
    membership = token.user_organization
    return CurrentUser(
        user=token.user,
        organization=membership.organization,
        user_organization=membership,
        token=token,
    )
