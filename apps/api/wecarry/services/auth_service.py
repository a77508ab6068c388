"""Authentication service - login start/finish and logout across identity providers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from urllib.parse import urlencode
from uuid import UUID

import jwt
from sqlalchemy.orm import Session

from wecarry.auth import get_auth_provider
from wecarry.core.config import settings
from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.core.security import (
    create_login_state_token,
    decode_login_state_token,
    generate_oauth_nonce,
    generate_oauth_state,
    verify_login_state,
)
from wecarry.db.enums import EventKind
from wecarry.db.models import Organization, User
from wecarry.events.outbox import emit_after_commit
from wecarry.events.types import AuthLoggedInEventData, Event
from wecarry.services import access_token_service, org_service, user_service

logger = logging.getLogger(__name__)


@dataclass
class LoginStart:
    """Either a provider redirect (with its state token) or org choices."""

    redirect_url: str | None = None
    state_token: str | None = None
    organizations: list[Organization] = field(default_factory=list)


@dataclass
class LoginResult:
    user: User
    is_new: bool
    access_token: str
    expires_at: datetime
    return_to: str = ""


def begin_login(
    db: Session,
    client_id: str,
    auth_email: str,
    org_uuid: UUID | None = None,
    return_to: str = "",
) -> LoginStart:
    """
    Start a login for auth_email.

    When the email matches more than one organization and none was chosen,
    the choices are returned instead of a redirect.
    """
    errors = ValidationError()
    if not client_id:
        errors.add("client_id", "client_id is required")
    auth_email = (auth_email or "").strip().lower()
    if "@" not in auth_email:
        errors.add("auth_email", "a valid email address is required")
    if errors.has_any():
        raise errors

    orgs = org_service.find_orgs_for_login(db, auth_email)
    if org_uuid is not None:
        orgs = [org for org in orgs if org.uuid == org_uuid]
    if not orgs:
        raise NotFoundError("organization for email")
    if len(orgs) > 1:
        return LoginStart(organizations=orgs)

    org = orgs[0]
    auth_type, auth_config = org_service.auth_settings_for(db, org, auth_email)
    provider = get_auth_provider(auth_type, auth_config)

    state = generate_oauth_state()
    nonce = generate_oauth_nonce()
    state_token = create_login_state_token(
        state, nonce, str(org.uuid), client_id, auth_email, return_to
    )
    return LoginStart(
        redirect_url=provider.build_login_redirect(state, nonce),
        state_token=state_token,
    )


async def finish_login(
    db: Session, state_token: str | None, params: dict[str, str]
) -> LoginResult:
    """
    Complete a login from the provider callback.

    Verifies the state cookie, asks the provider for the identity, resolves
    or creates the user and issues a bearer token.
    """
    if not state_token:
        raise AuthorizationError("login state cookie missing")
    try:
        stored = decode_login_state_token(state_token)
    except jwt.InvalidTokenError as exc:
        raise AuthorizationError(f"invalid login state: {exc}") from exc

    valid, reason = verify_login_state(stored, params.get("state", ""))
    if not valid:
        raise AuthorizationError(reason)

    org = org_service.find_org_by_uuid(db, UUID(stored["org_id"]))
    auth_type, auth_config = org_service.auth_settings_for(db, org, stored["auth_email"])
    provider = get_auth_provider(auth_type, auth_config)
    auth_user = await provider.complete_login(params, stored["nonce"])

    user, is_new = user_service.find_or_create_from_auth_user(db, org.id, auth_user)
    emit_after_commit(
        db,
        Event(
            EventKind.AUTH_USER_LOGGED_IN,
            AuthLoggedInEventData(user_id=user.id, organization_id=org.id),
            message=f"User {user.uuid} logged in to org {org.uuid}",
        ),
    )
    access_token, expires_at = access_token_service.create_access_token(
        db, user, org, stored["client_id"]
    )
    logger.info("User %s logged in (new=%s)", user.uuid, is_new)
    return LoginResult(
        user=user,
        is_new=is_new,
        access_token=access_token,
        expires_at=expires_at,
        return_to=stored.get("return_to", ""),
    )


def login_redirect_url(result: LoginResult) -> str:
    """UI URL carrying the new token; new users land on /welcome."""
    path = "/welcome" if result.is_new else (result.return_to or "/")
    if not path.startswith("/"):
        path = "/"
    params = {
        "token_type": "Bearer",
        "expires_utc": int(result.expires_at.timestamp()),
        "access-token": result.access_token,
    }
    return f"{settings.UI_URL.rstrip('/')}{path}?{urlencode(params)}"


def logout(db: Session, bearer: str) -> str:
    """Revoke the bearer token. Returns where to send the browser."""
    default_url = f"{settings.UI_URL.rstrip('/')}/logged-out"
    try:
        current = access_token_service.resolve_bearer_token(db, bearer)
    except (NotFoundError, AuthorizationError):
        return default_url

    auth_type, auth_config = org_service.auth_settings_for(
        db, current.organization, current.user_organization.auth_email
    )
    provider = get_auth_provider(auth_type, auth_config)
    redirect = provider.logout(bearer)
    access_token_service.delete_by_bearer_token(db, bearer)
    return redirect or default_url
