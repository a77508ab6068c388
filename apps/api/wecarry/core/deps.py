"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from wecarry.core.errors import AuthorizationError, NotFoundError
from wecarry.db.session import SessionLocal
from wecarry.services import user_service
from wecarry.services.access_token_service import CurrentUser, resolve_bearer_token

BEARER_PREFIX = "bearer "


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        return None
    return header[len(BEARER_PREFIX):].strip() or None


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> CurrentUser:
    """
    Resolve the caller from the Authorization: Bearer header.

    Raises:
        HTTPException 401: token missing, unknown or expired
    """
    bearer = get_bearer_token(request)
    if not bearer:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return resolve_bearer_token(db, bearer)
    except NotFoundError:
        raise HTTPException(status_code=401, detail="Invalid access token")
    except AuthorizationError:
        raise HTTPException(status_code=401, detail="Access token expired")


def require_site_admin(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user_service.is_site_admin(current.user):
        raise AuthorizationError(f"user {current.user.uuid} is not a site admin")
    return current
