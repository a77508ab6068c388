"""Authentication router - login through the org's identity provider, and logout."""

import logging
from uuid import UUID

import httpx
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from wecarry.auth import AuthProviderError
from wecarry.core.config import settings
from wecarry.core.deps import get_db
from wecarry.core.errors import AuthorizationError
from wecarry.core.rate_limit import AUTH_LIMIT, limiter
from wecarry.schemas.auth import LoginResponse, OrganizationOption
from wecarry.services import auth_service

logger = logging.getLogger(__name__)

router = APIRouter()

LOGIN_STATE_COOKIE = "wecarry_login_state"


def _error_redirect(reason: str) -> RedirectResponse:
    response = RedirectResponse(
        url=f"{settings.UI_URL.rstrip('/')}/login?error={reason}", status_code=302
    )
    response.delete_cookie(LOGIN_STATE_COOKIE, path="/auth")
    return response


@router.get("/login", response_model=LoginResponse)
@limiter.limit(AUTH_LIMIT)
def login(
    request: Request,
    client_id: str,
    auth_email: str,
    org_id: UUID | None = None,
    return_to: str = "",
    db: Session = Depends(get_db),
):
    """
    Start a login.

    Returns the org choices when the email belongs to several orgs;
    otherwise sets the signed state cookie and returns the provider URL.
    """
    start = auth_service.begin_login(db, client_id, auth_email, org_id, return_to)
    if start.redirect_url is None:
        return LoginResponse(
            organizations=[
                OrganizationOption(id=org.uuid, name=org.name) for org in start.organizations
            ]
        )

    response = JSONResponse(LoginResponse(redirect_url=start.redirect_url).model_dump())
    response.set_cookie(
        key=LOGIN_STATE_COOKIE,
        value=start.state_token,
        max_age=settings.AUTH_STATE_EXPIRES_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=settings.cookie_secure,
        path="/auth",
    )
    return response


@router.get("/callback")
@limiter.limit(AUTH_LIMIT)
async def callback(request: Request, db: Session = Depends(get_db)):
    """Finish a login and hand the new bearer token to the UI."""
    params = dict(request.query_params)
    try:
        result = await auth_service.finish_login(
            db, request.cookies.get(LOGIN_STATE_COOKIE), params
        )
    except AuthorizationError as e:
        logger.warning("Login rejected: %s", e)
        return _error_redirect("login_rejected")
    except (AuthProviderError, httpx.HTTPError) as e:
        logger.warning("Identity provider login failed: %s", e)
        return _error_redirect("provider_error")

    response = RedirectResponse(url=auth_service.login_redirect_url(result), status_code=302)
    response.delete_cookie(LOGIN_STATE_COOKIE, path="/auth")
    return response


@router.get("/logout")
def logout(token: str, db: Session = Depends(get_db)):
    """Revoke a bearer token and follow the provider's logout, if any."""
    return RedirectResponse(url=auth_service.logout(db, token), status_code=302)
