"""Development-only provider that logs in as a configured identity."""

from __future__ import annotations

from urllib.parse import urlencode

from wecarry.auth.base import AuthProviderError, AuthUser
from wecarry.core.config import settings


class DevAuthProvider:
    """
    Skips the identity provider round trip.

    The redirect points straight back at our callback; complete_login returns
    the identity from config. The email may be overridden per login with an
    "email" callback param so one org can host several dev users.
    """

    def __init__(self, config: dict | None = None):
        self.config = config or {}

    def build_login_redirect(self, state: str, nonce: str) -> str:
        params = {"state": state, "code": "dev"}
        return f"{settings.AUTH_CALLBACK_URL}?{urlencode(params)}"

    async def complete_login(self, params: dict[str, str], expected_nonce: str) -> AuthUser:
        email = (params.get("email") or self.config.get("email") or "").lower()
        if not email:
            raise AuthProviderError("Dev auth needs an email")
        return AuthUser(
            auth_id=self.config.get("auth_id") or f"dev|{email}",
            email=email,
            first_name=self.config.get("first_name", "Dev"),
            last_name=self.config.get("last_name", "User"),
            photo_url=self.config.get("photo_url"),
        )

    def logout(self, access_token: str) -> str | None:
        return None
