"""Identity provider contract shared by every login strategy."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from wecarry.core.errors import WeCarryError


class AuthProviderError(WeCarryError):
    """Login with the identity provider failed or is misconfigured."""

    pass


@dataclass(frozen=True)
class AuthUser:
    """Verified identity returned by a provider after login."""

    auth_id: str
    email: str  # Normalized to lowercase
    first_name: str
    last_name: str
    photo_url: str | None = None


class AuthProvider(Protocol):
    """
    One identity provider.

    The login router calls build_login_redirect, receives the provider's
    callback, hands its query params to complete_login, and on logout
    redirects to whatever logout returns (if anything).
    """

    def build_login_redirect(self, state: str, nonce: str) -> str:
        ...

    async def complete_login(self, params: dict[str, str], expected_nonce: str) -> AuthUser:
        ...

    def logout(self, access_token: str) -> str | None:
        ...
