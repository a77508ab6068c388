"""
Generic OpenID Connect provider (Azure AD and other IdPs).

Config keys: client_id, client_secret, authorization_endpoint,
token_endpoint, jwks_uri, issuer, and optionally end_session_endpoint
and scope.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
import jwt

from wecarry.auth.base import AuthProviderError, AuthUser
from wecarry.core.config import settings
from wecarry.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

REQUIRED_CONFIG = (
    "client_id",
    "authorization_endpoint",
    "token_endpoint",
    "jwks_uri",
    "issuer",
)
SIGNING_ALGORITHMS = ["RS256", "RS384", "RS512", "ES256"]


class OidcAuthProvider:
    def __init__(self, config: dict):
        missing = [key for key in REQUIRED_CONFIG if not config.get(key)]
        if missing:
            raise AuthProviderError(f"OIDC config missing: {', '.join(missing)}")
        self.config = config
        self.redirect_uri = config.get("redirect_uri") or settings.AUTH_CALLBACK_URL
        self._jwks_client: jwt.PyJWKClient | None = None

    @property
    def jwks_client(self) -> jwt.PyJWKClient:
        if self._jwks_client is None:
            self._jwks_client = jwt.PyJWKClient(self.config["jwks_uri"])
        return self._jwks_client

    def build_login_redirect(self, state: str, nonce: str) -> str:
        params = {
            "client_id": self.config["client_id"],
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.config.get("scope", "openid email profile"),
            "state": state,
            "nonce": nonce,
        }
        return f"{self.config['authorization_endpoint']}?{urlencode(params)}"

    async def _exchange_code(self, code: str) -> dict:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await request_with_retries(
                lambda: client.post(
                    self.config["token_endpoint"],
                    data={
                        "code": code,
                        "client_id": self.config["client_id"],
                        "client_secret": self.config.get("client_secret", ""),
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                ),
                label="oidc_token",
            )
        if response.status_code >= 400:
            raise AuthProviderError(f"OIDC token exchange failed ({response.status_code})")
        return response.json()

    def decode_id_token(self, token: str, expected_nonce: str) -> dict:
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=SIGNING_ALGORITHMS,
                audience=self.config["client_id"],
                issuer=self.config["issuer"],
            )
        except jwt.PyJWTError as exc:
            raise AuthProviderError(f"Invalid OIDC ID token: {exc}") from exc
        if claims.get("nonce") != expected_nonce:
            raise AuthProviderError("Nonce mismatch")
        return claims

    @staticmethod
    def user_from_claims(claims: dict) -> AuthUser:
        # Azure AD puts the stable id in oid and may omit email
        auth_id = claims.get("oid") or claims.get("sub")
        email = claims.get("email") or claims.get("preferred_username") or claims.get("upn")
        if not auth_id or not email:
            raise AuthProviderError("OIDC ID token lacks subject or email")
        first_name = claims.get("given_name", "")
        last_name = claims.get("family_name", "")
        if not first_name and claims.get("name"):
            first_name, _, last_name = claims["name"].partition(" ")
        return AuthUser(
            auth_id=auth_id,
            email=email.lower(),
            first_name=first_name,
            last_name=last_name,
            photo_url=claims.get("picture"),
        )

    async def complete_login(self, params: dict[str, str], expected_nonce: str) -> AuthUser:
        if params.get("error"):
            raise AuthProviderError(
                f"OIDC provider returned error: {params.get('error_description') or params['error']}"
            )
        code = params.get("code")
        if not code:
            raise AuthProviderError("Missing authorization code")
        tokens = await self._exchange_code(code)
        raw_id_token = tokens.get("id_token")
        if not raw_id_token:
            raise AuthProviderError("OIDC token response had no id_token")
        return self.user_from_claims(self.decode_id_token(raw_id_token, expected_nonce))

    def logout(self, access_token: str) -> str | None:
        end_session = self.config.get("end_session_endpoint")
        if not end_session:
            return None
        return f"{end_session}?{urlencode({'post_logout_redirect_uri': settings.UI_URL})}"
