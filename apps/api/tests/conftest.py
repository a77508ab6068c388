"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, created and dropped per test
- Organization / user / post factories
- Event dispatcher with the real listeners, and a dummy email sender
- HTTPX AsyncClient, optionally with a Bearer token
"""
import os
from dataclasses import dataclass
from typing import AsyncGenerator, Callable, Generator

# Must be set before any wecarry import reads settings
os.environ["TESTING"] = "1"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENV"] = "test"
os.environ["EMAIL_PROVIDER"] = "dummy"
os.environ["STORAGE_BACKEND"] = "local"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

import wecarry.db.models  # noqa: F401
from wecarry.core.deps import get_db
from wecarry.db.base import Base
from wecarry.db.enums import AuthType, EventKind, OrgRole, PostSize, PostType, UserAdminRole
from wecarry.db.models import Organization, Post, User, UserOrganization
from wecarry.db.session import SessionLocal, engine
from wecarry.events.dispatcher import EventDispatcher
from wecarry.events.listeners import CleanupState, register_listeners
from wecarry.events.outbox import set_dispatcher
from wecarry.main import app
from wecarry.schemas.location import LocationInput
from wecarry.schemas.post import PostCreate
from wecarry.services import access_token_service, post_service
from wecarry.services.email_sender import DummyEmailSender, set_email_sender

TEST_CLIENT_ID = "test-client"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema per test.

    Services commit freely; dropping the schema afterwards is the isolation.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _reset_process_state() -> Generator[None, None, None]:
    """No dispatcher or email sender leaks between tests."""
    set_dispatcher(None)
    yield
    set_dispatcher(None)
    set_email_sender(None)


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture
def make_org(db: Session) -> Callable[..., Organization]:
    def _make(name: str = "Test Organization", auth_type: str = AuthType.DEV.value, **kwargs):
        org = Organization(name=name, auth_type=auth_type, auth_config=kwargs.pop("auth_config", {}), **kwargs)
        db.add(org)
        db.commit()
        db.refresh(org)
        return org

    return _make


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        org: Organization | None = None,
        *,
        email: str | None = None,
        admin_role: UserAdminRole = UserAdminRole.USER,
        org_role: OrgRole = OrgRole.MEMBER,
        preferences: dict | None = None,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        email = email or f"user{n}@example.com"
        user = User(
            email=email,
            first_name=f"First{n}",
            last_name=f"Last{n}",
            nickname=f"user{n}",
            admin_role=admin_role.value,
            preferences=preferences or {},
        )
        db.add(user)
        db.flush()
        if org is not None:
            db.add(
                UserOrganization(
                    organization_id=org.id,
                    user_id=user.id,
                    role=org_role.value,
                    auth_id=f"auth|{n}",
                    auth_email=email,
                )
            )
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_post(db: Session) -> Callable[..., Post]:
    def _make(
        user: User,
        org: Organization,
        *,
        post_type: PostType = PostType.REQUEST,
        **kwargs,
    ) -> Post:
        data = PostCreate(
            type=post_type,
            organization_id=org.uuid,
            title=kwargs.pop("title", "Bring coffee"),
            size=kwargs.pop("size", PostSize.SMALL),
            destination=kwargs.pop(
                "destination",
                LocationInput(description="Nairobi, Kenya", country="KE", latitude=-1.29, longitude=36.82),
            ),
            **kwargs,
        )
        return post_service.create_post(db, user, data)

    return _make


@pytest.fixture
def test_org(make_org) -> Organization:
    return make_org("Test Organization")


@pytest.fixture
def other_org(make_org) -> Organization:
    return make_org("Other Organization")


@pytest.fixture
def test_user(make_user, test_org) -> User:
    return make_user(test_org, email="test@example.com")


@pytest.fixture
def admin_user(make_user, test_org) -> User:
    return make_user(test_org, email="admin@example.com", admin_role=UserAdminRole.SUPER_ADMIN)


# =============================================================================
# Events and email
# =============================================================================

@pytest.fixture
def cleanup_state() -> CleanupState:
    return CleanupState()


@pytest.fixture
def dispatcher(db: Session, cleanup_state: CleanupState) -> Generator[EventDispatcher, None, None]:
    """Real listeners installed as the process-wide dispatcher."""
    dispatcher = EventDispatcher()
    register_listeners(dispatcher, cleanup_state, session_factory=SessionLocal)
    set_dispatcher(dispatcher)
    yield dispatcher
    set_dispatcher(None)


@pytest.fixture
def email_sender() -> Generator[DummyEmailSender, None, None]:
    sender = DummyEmailSender()
    set_email_sender(sender)
    yield sender
    set_email_sender(None)


# =============================================================================
# HTTP Client Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Authenticated caller for API tests."""
    user: User
    org: Organization
    bearer: str

    @property
    def headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.bearer}"}


@pytest.fixture
def test_auth(db: Session, test_user: User, test_org: Organization) -> TestAuth:
    token, _ = access_token_service.create_access_token(db, test_user, test_org, TEST_CLIENT_ID)
    return TestAuth(user=test_user, org=test_org, bearer=f"{TEST_CLIENT_ID}{token}")


@pytest.fixture
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated client sharing the test session."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
async def authed_client(client: AsyncClient, test_auth: TestAuth) -> AsyncGenerator[AsyncClient, None]:
    client.headers.update(test_auth.headers)
    yield client


@pytest.fixture
def event_log() -> Generator[list, None, None]:
    """Records every dispatched event, in order."""
    events: list = []
    recorder = EventDispatcher()
    for kind in EventKind:
        recorder.register(kind, f"record-{kind.value}", events.append)
    set_dispatcher(recorder)
    yield events
    set_dispatcher(None)
