"""Security utilities for bearer access tokens and login state cookies."""

import hashlib
import secrets
import string
from datetime import datetime, timedelta, timezone

import jwt

from wecarry.core.config import settings


ACCESS_TOKEN_LENGTH = 32
_TOKEN_ALPHABET = string.ascii_letters + string.digits


# =============================================================================
# Bearer Access Tokens
# =============================================================================

def generate_access_token() -> str:
    """Random alphanumeric token handed to the client once, at login."""
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(ACCESS_TOKEN_LENGTH))


def hash_access_token(client_id: str, access_token: str) -> str:
    """
    Hash used as the stored form of an access token.

    The client sends "client_id + token" as its bearer value, so the same
    hash is produced by hash_bearer_token(bearer).
    """
    return hash_bearer_token(f"{client_id}{access_token}")


def hash_bearer_token(bearer: str) -> str:
    return hashlib.sha256(bearer.encode()).hexdigest()


# =============================================================================
# Login State (JWT in cookie)
# =============================================================================

def generate_oauth_state() -> str:
    """Generate cryptographically random state (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)


def generate_oauth_nonce() -> str:
    """Generate cryptographically random nonce (32 bytes, URL-safe base64)."""
    return secrets.token_urlsafe(32)


def create_login_state_token(
    state: str,
    nonce: str,
    org_id: str,
    client_id: str,
    auth_email: str,
    return_to: str = "",
) -> str:
    """
    Create signed login state JWT.

    Always signs with current secret (JWT_SECRET). Carries everything the
    callback needs to finish the login without server-side storage.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "state": state,
        "nonce": nonce,
        "org_id": org_id,
        "client_id": client_id,
        "auth_email": auth_email,
        "return_to": return_to,
        "iat": now,
        "exp": now + timedelta(minutes=settings.AUTH_STATE_EXPIRES_MINUTES),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_login_state_token(token: str) -> dict:
    """
    Decode and verify login state JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore


def verify_login_state(stored_payload: dict, received_state: str) -> tuple[bool, str]:
    """
    Verify callback state matches stored state.

    Returns:
        (success, error_message)
    """
    if not received_state or stored_payload.get("state") != received_state:
        return False, "State mismatch"
    return True, ""
