"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uuid import UUID, uuid4
from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wecarry.db.base import Base
from wecarry.db.types import utcnow

if TYPE_CHECKING:
    from wecarry.db.models import File, UserOrganization


class Organization(Base):
    """
    A tenant in the marketplace.

    Posts, memberships and domains are scoped by organization_id. The
    auth_type/auth_config pair selects the identity provider used at login.
    """

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str | None] = mapped_column(String(255), nullable=True)
    auth_type: Mapped[str] = mapped_column(String(50), nullable=False)
    auth_config: Mapped[dict] = mapped_column(nullable=False, default=dict)
    logo_file_id: Mapped[int | None] = mapped_column(
        ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    domains: Mapped[list["OrganizationDomain"]] = relationship(
        back_populates="organization", cascade="all, delete-orphan"
    )
    memberships: Mapped[list["UserOrganization"]] = relationship(back_populates="organization")
    logo: Mapped["File | None"] = relationship()

    def __repr__(self) -> str:
        return f"<Organization {self.id} {self.name!r}>"


class OrganizationDomain(Base):
    """
    Email domain owned by an organization.

    Used at login to find the organization (and optionally a domain-specific
    identity provider) for a user who has no membership yet.
    """

    __tablename__ = "organization_domains"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    domain: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    auth_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    auth_config: Mapped[dict | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    organization: Mapped["Organization"] = relationship(back_populates="domains")


class Trust(Base):
    """
    Symmetric visibility-sharing relationship between two organizations.

    Stored as one row; (primary, secondary) and (secondary, primary) mean
    the same thing.
    """

    __tablename__ = "organization_trusts"
    __table_args__ = (
        UniqueConstraint("primary_id", "secondary_id", name="uq_trust_pair"),
        CheckConstraint("primary_id <> secondary_id", name="ck_trust_distinct"),
        Index("idx_trust_secondary", "secondary_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    primary_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    secondary_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
