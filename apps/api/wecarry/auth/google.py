"""Google OAuth2 code flow with google-auth ID token verification."""

from __future__ import annotations

import logging
from urllib.parse import urlencode

import httpx
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token

from wecarry.auth.base import AuthProviderError, AuthUser
from wecarry.core.config import settings
from wecarry.services.http_service import request_with_retries

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")


class GoogleAuthProvider:
    def __init__(self, config: dict | None = None):
        config = config or {}
        self.client_id = config.get("client_id") or settings.GOOGLE_CLIENT_ID
        self.client_secret = config.get("client_secret") or settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = config.get("redirect_uri") or settings.AUTH_CALLBACK_URL
        self.hosted_domain = config.get("hosted_domain", "")
        if not self.client_id:
            raise AuthProviderError("Google client_id is not configured")

    def build_login_redirect(self, state: str, nonce: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": "openid email profile",
            "state": state,
            "nonce": nonce,
        }
        if self.hosted_domain:
            params["hd"] = self.hosted_domain
        return f"{AUTHORIZE_URL}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, code: str) -> dict:
        async with httpx.AsyncClient(timeout=10.0) as client:
            response = await request_with_retries(
                lambda: client.post(
                    TOKEN_URL,
                    data={
                        "code": code,
                        "client_id": self.client_id,
                        "client_secret": self.client_secret,
                        "redirect_uri": self.redirect_uri,
                        "grant_type": "authorization_code",
                    },
                ),
                label="google_token",
            )
        if response.status_code >= 400:
            raise AuthProviderError(f"Google token exchange failed ({response.status_code})")
        return response.json()

    def verify_id_token(self, token: str, expected_nonce: str) -> AuthUser:
        """
        Verify a Google ID token.

        google-auth handles JWKS fetching, signature and standard claims.
        We additionally require a verified email and a matching nonce.
        """
        try:
            idinfo = id_token.verify_oauth2_token(
                token, google_requests.Request(), self.client_id
            )
        except ValueError as exc:
            raise AuthProviderError(f"Invalid Google ID token: {exc}") from exc

        if idinfo.get("iss") not in GOOGLE_ISSUERS:
            raise AuthProviderError("Invalid issuer")
        if not idinfo.get("email_verified"):
            raise AuthProviderError("Email not verified by Google")
        if idinfo.get("nonce") != expected_nonce:
            raise AuthProviderError("Nonce mismatch")

        return AuthUser(
            auth_id=idinfo["sub"],
            email=idinfo["email"].lower(),
            first_name=idinfo.get("given_name", ""),
            last_name=idinfo.get("family_name", ""),
            photo_url=idinfo.get("picture"),
        )

    async def complete_login(self, params: dict[str, str], expected_nonce: str) -> AuthUser:
        if params.get("error"):
            raise AuthProviderError(f"Google returned error: {params['error']}")
        code = params.get("code")
        if not code:
            raise AuthProviderError("Missing authorization code")
        tokens = await self.exchange_code_for_tokens(code)
        raw_id_token = tokens.get("id_token")
        if not raw_id_token:
            raise AuthProviderError("Google token response had no id_token")
        return self.verify_id_token(raw_id_token, expected_nonce)

    def logout(self, access_token: str) -> str | None:
        # Google sessions outlive ours; nothing to redirect to
        return None
