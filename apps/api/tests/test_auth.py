"""Tests for login state tokens, identity provider selection and the login flow."""
import re
from urllib.parse import parse_qs, urlparse

import jwt
import pytest

from wecarry.auth import (
    AuthProviderError,
    DevAuthProvider,
    GoogleAuthProvider,
    OidcAuthProvider,
    get_auth_provider,
)
from wecarry.core.config import settings
from wecarry.core.errors import AuthorizationError, NotFoundError, ValidationError
from wecarry.core.security import (
    create_login_state_token,
    decode_login_state_token,
    verify_login_state,
)
from wecarry.db.enums import AuthType, EventKind
from wecarry.db.models import OrganizationDomain, UserAccessToken, UserOrganization
from wecarry.services import access_token_service, auth_service

NEW_DOMAIN = "newco.example"


@pytest.fixture
def open_domain(db, test_org):
    """Anyone at NEW_DOMAIN may log in to test_org."""
    db.add(OrganizationDomain(organization_id=test_org.id, domain=NEW_DOMAIN))
    db.commit()
    return NEW_DOMAIN


def _query(url: str) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlparse(url).query).items()}


# =============================================================================
# Login state tokens
# =============================================================================

def test_state_token_round_trip():
    token = create_login_state_token("s", "n", "org", "web", "a@example.com", "/posts")
    payload = decode_login_state_token(token)

    assert payload["state"] == "s"
    assert payload["nonce"] == "n"
    assert payload["client_id"] == "web"
    assert payload["return_to"] == "/posts"
    assert verify_login_state(payload, "s") == (True, "")
    assert verify_login_state(payload, "other") == (False, "State mismatch")
    assert not verify_login_state(payload, "")[0]


def test_state_token_accepts_previous_secret(monkeypatch):
    monkeypatch.setattr(settings, "JWT_SECRET", "old-secret", raising=False)
    token = create_login_state_token("s", "n", "org", "web", "a@example.com")

    monkeypatch.setattr(settings, "JWT_SECRET", "new-secret", raising=False)
    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "old-secret", raising=False)
    assert decode_login_state_token(token)["state"] == "s"

    monkeypatch.setattr(settings, "JWT_SECRET_PREVIOUS", "", raising=False)
    with pytest.raises(jwt.InvalidTokenError):
        decode_login_state_token(token)


# =============================================================================
# Provider selection
# =============================================================================

def test_get_auth_provider(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "google-client", raising=False)

    assert isinstance(get_auth_provider(AuthType.DEV.value), DevAuthProvider)
    assert isinstance(get_auth_provider(AuthType.GOOGLE.value), GoogleAuthProvider)
    oidc = get_auth_provider(
        AuthType.OIDC.value,
        {
            "client_id": "c",
            "authorization_endpoint": "https://idp.example/authorize",
            "token_endpoint": "https://idp.example/token",
            "jwks_uri": "https://idp.example/jwks",
            "issuer": "https://idp.example",
        },
    )
    assert isinstance(oidc, OidcAuthProvider)
    with pytest.raises(AuthProviderError):
        get_auth_provider("saml2")


def test_misconfigured_providers(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "", raising=False)
    with pytest.raises(AuthProviderError):
        get_auth_provider(AuthType.GOOGLE.value)
    with pytest.raises(AuthProviderError):
        get_auth_provider(AuthType.OIDC.value, {"client_id": "c"})


def test_dev_provider_disabled_in_production(monkeypatch):
    monkeypatch.setattr(settings, "ENV", "prod", raising=False)
    with pytest.raises(AuthProviderError):
        get_auth_provider(AuthType.DEV.value)


def test_google_redirect_carries_state_and_nonce(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "google-client", raising=False)
    provider = GoogleAuthProvider({"hosted_domain": "example.org"})

    params = _query(provider.build_login_redirect("the-state", "the-nonce"))

    assert params["client_id"] == "google-client"
    assert params["state"] == "the-state"
    assert params["nonce"] == "the-nonce"
    assert params["hd"] == "example.org"


async def test_google_rejects_callback_error(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "google-client", raising=False)
    provider = GoogleAuthProvider()
    with pytest.raises(AuthProviderError):
        await provider.complete_login({"error": "access_denied"}, "nonce")
    with pytest.raises(AuthProviderError):
        await provider.complete_login({}, "nonce")


# =============================================================================
# Auth service
# =============================================================================

def test_begin_login_validates(db):
    with pytest.raises(ValidationError) as exc:
        auth_service.begin_login(db, "", "not-an-email")
    assert exc.value.get("client_id")
    assert exc.value.get("auth_email")


def test_begin_login_unknown_email(db, test_org):
    with pytest.raises(NotFoundError):
        auth_service.begin_login(db, "web", "nobody@nowhere.example")


def test_begin_login_offers_org_choice(db, test_user, other_org):
    db.add(
        UserOrganization(
            organization_id=other_org.id,
            user_id=test_user.id,
            auth_id="other|1",
            auth_email=test_user.email,
        )
    )
    db.commit()

    start = auth_service.begin_login(db, "web", test_user.email)
    assert start.redirect_url is None
    assert len(start.organizations) == 2

    chosen = auth_service.begin_login(db, "web", test_user.email, other_org.uuid)
    assert chosen.redirect_url is not None
    assert decode_login_state_token(chosen.state_token)["org_id"] == str(other_org.uuid)


async def test_dev_login_creates_user_and_token(db, open_domain, event_log):
    email = f"newbie@{open_domain}"
    start = auth_service.begin_login(db, "web", email, return_to="/posts")
    params = _query(start.redirect_url)
    params["email"] = email

    result = await auth_service.finish_login(db, start.state_token, params)

    assert result.is_new
    assert result.user.email == email
    current = access_token_service.resolve_bearer_token(db, f"web{result.access_token}")
    assert current.user.id == result.user.id
    assert EventKind.AUTH_USER_LOGGED_IN in [e.kind for e in event_log]

    redirect = auth_service.login_redirect_url(result)
    assert urlparse(redirect).path == "/welcome"
    assert _query(redirect)["access-token"] == result.access_token


async def test_finish_login_rejects_state_mismatch(db, open_domain):
    start = auth_service.begin_login(db, "web", f"newbie@{open_domain}")
    with pytest.raises(AuthorizationError):
        await auth_service.finish_login(db, start.state_token, {"state": "forged", "code": "dev"})
    with pytest.raises(AuthorizationError):
        await auth_service.finish_login(db, None, {"state": "x"})
    with pytest.raises(AuthorizationError):
        await auth_service.finish_login(db, "garbage", {"state": "x"})


def test_redirect_ignores_offsite_return_to(db, test_user):
    result = auth_service.LoginResult(
        user=test_user,
        is_new=False,
        access_token="abc",
        expires_at=test_user.created_at,
        return_to="https://evil.example/steal",
    )
    assert urlparse(auth_service.login_redirect_url(result)).path == "/"


def test_logout_revokes_token(db, test_auth):
    url = auth_service.logout(db, test_auth.bearer)

    assert url.endswith("/logged-out")
    assert db.query(UserAccessToken).count() == 0
    # Unknown tokens still log out cleanly
    assert auth_service.logout(db, test_auth.bearer).endswith("/logged-out")


# =============================================================================
# Router
# =============================================================================

async def test_login_flow_through_router(client, db, open_domain):
    email = f"router@{open_domain}"
    response = await client.get(
        "/auth/login", params={"client_id": "web", "auth_email": email}
    )
    assert response.status_code == 200
    redirect_url = response.json()["redirect_url"]
    state_token = re.search(r"wecarry_login_state=([^;]+)", response.headers["set-cookie"]).group(1)

    callback_params = _query(redirect_url)
    callback_params["email"] = email
    response = await client.get(
        "/auth/callback",
        params=callback_params,
        headers={"Cookie": f"wecarry_login_state={state_token}"},
    )

    assert response.status_code == 302
    location = response.headers["location"]
    token = _query(location)["access-token"]
    me = await client.get("/me", headers={"Authorization": f"Bearer web{token}"})
    assert me.status_code == 200
    assert me.json()["email"] == email


async def test_callback_without_cookie_redirects_with_error(client):
    response = await client.get("/auth/callback", params={"state": "x", "code": "dev"})
    assert response.status_code == 302
    assert response.headers["location"].endswith("/login?error=login_rejected")


async def test_login_unknown_email_is_404(client, db):
    response = await client.get(
        "/auth/login", params={"client_id": "web", "auth_email": "ghost@nowhere.example"}
    )
    assert response.status_code == 404
