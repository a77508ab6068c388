"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uuid import UUID, uuid4
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wecarry.db.base import Base
from wecarry.db.enums import DEFAULT_ADMIN_ROLE, DEFAULT_ORG_ROLE
from wecarry.db.types import utcnow

if TYPE_CHECKING:
    from wecarry.db.models import File, Location, Organization


class User(Base):
    """
    A person using the marketplace.

    admin_role is site-wide and independent of the per-organization role
    held in UserOrganization.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    nickname: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    admin_role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_ADMIN_ROLE.value
    )
    photo_file_id: Mapped[int | None] = mapped_column(
        ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )
    auth_photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    location_id: Mapped[int | None] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    # notifications_opt_out, max_distance_km, weight_unit
    preferences: Mapped[dict] = mapped_column(nullable=False, default=dict)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    memberships: Mapped[list["UserOrganization"]] = relationship(
        back_populates="user", cascade="all, delete-orphan"
    )
    photo: Mapped["File | None"] = relationship()
    location: Mapped["Location | None"] = relationship()

    @property
    def real_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def __repr__(self) -> str:
        return f"<User {self.id} {self.nickname!r}>"


class UserOrganization(Base):
    """Membership of a user in an organization, with login identity details."""

    __tablename__ = "user_organizations"
    __table_args__ = (
        UniqueConstraint("user_id", "organization_id", name="uq_user_org"),
        Index("idx_user_org_auth_email", "auth_email"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_ORG_ROLE.value)
    auth_id: Mapped[str] = mapped_column(String(255), nullable=False)
    auth_email: Mapped[str] = mapped_column(String(255), nullable=False)
    last_login: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    user: Mapped["User"] = relationship(back_populates="memberships")
    organization: Mapped["Organization"] = relationship(back_populates="memberships")


class UserAccessToken(Base):
    """
    Bearer token issued at login.

    Only a SHA-256 hash of client_id + token is stored. One active token per
    (user, organization) pair.
    """

    __tablename__ = "user_access_tokens"
    __table_args__ = (Index("idx_uat_expires", "expires_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    user_organization_id: Mapped[int] = mapped_column(
        ForeignKey("user_organizations.id", ondelete="CASCADE"), nullable=False
    )
    access_token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    user: Mapped["User"] = relationship()
    user_organization: Mapped["UserOrganization"] = relationship()
