"""Identity providers, selected per organization by auth type."""

from wecarry.auth.base import AuthProvider, AuthProviderError, AuthUser
from wecarry.auth.dev import DevAuthProvider
from wecarry.auth.google import GoogleAuthProvider
from wecarry.auth.oidc import OidcAuthProvider
from wecarry.core.config import settings
from wecarry.db.enums import AuthType

__all__ = [
    "AuthProvider",
    "AuthProviderError",
    "AuthUser",
    "DevAuthProvider",
    "GoogleAuthProvider",
    "OidcAuthProvider",
    "get_auth_provider",
]


def get_auth_provider(auth_type: str, auth_config: dict | None = None) -> AuthProvider:
    """Build the provider for an org's (or org domain's) auth type."""
    if auth_type == AuthType.GOOGLE.value:
        return GoogleAuthProvider(auth_config)
    if auth_type == AuthType.OIDC.value:
        return OidcAuthProvider(auth_config or {})
    if auth_type == AuthType.DEV.value:
        if settings.ENV not in ("dev", "test"):
            raise AuthProviderError("Dev auth is disabled outside development")
        return DevAuthProvider(auth_config)
    raise AuthProviderError(f"Unknown auth type: {auth_type}")
