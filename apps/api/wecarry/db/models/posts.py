"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uuid import UUID, uuid4
from datetime import date, datetime

from sqlalchemy import (
    Date,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wecarry.db.base import Base
from wecarry.db.enums import DEFAULT_POST_STATUS, DEFAULT_POST_VISIBILITY
from wecarry.db.types import utcnow

if TYPE_CHECKING:
    from wecarry.db.models import File, Location, Meeting, Organization, User


class Post(Base):
    """
    A request for an item to be carried, or an offer to carry one.

    Never hard-deleted: REMOVED is a terminal status. Status only changes
    through post_service.update_post_status, which also writes PostHistory.
    """

    __tablename__ = "posts"
    __table_args__ = (
        Index("idx_posts_org_status", "organization_id", "status"),
        Index("idx_posts_created_by", "created_by_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_POST_STATUS.value
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    size: Mapped[str] = mapped_column(String(20), nullable=False)
    url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    kilograms: Mapped[float | None] = mapped_column(Float, nullable=True)
    needed_before: Mapped[date | None] = mapped_column(Date, nullable=True)
    needed_after: Mapped[date | None] = mapped_column(Date, nullable=True)
    visibility: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_POST_VISIBILITY.value
    )

    created_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    organization_id: Mapped[int] = mapped_column(
        ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    receiver_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    destination_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    origin_id: Mapped[int | None] = mapped_column(
        ForeignKey("locations.id", ondelete="SET NULL"), nullable=True
    )
    meeting_id: Mapped[int | None] = mapped_column(
        ForeignKey("meetings.id", ondelete="SET NULL"), nullable=True
    )
    photo_file_id: Mapped[int | None] = mapped_column(
        ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    created_by: Mapped["User"] = relationship(foreign_keys=[created_by_id])
    provider: Mapped["User | None"] = relationship(foreign_keys=[provider_id])
    receiver: Mapped["User | None"] = relationship(foreign_keys=[receiver_id])
    organization: Mapped["Organization"] = relationship()
    destination: Mapped["Location"] = relationship(foreign_keys=[destination_id])
    origin: Mapped["Location | None"] = relationship(foreign_keys=[origin_id])
    meeting: Mapped["Meeting | None"] = relationship(back_populates="posts")
    photo: Mapped["File | None"] = relationship()
    files: Mapped[list["PostFile"]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )
    histories: Mapped[list["PostHistory"]] = relationship(
        back_populates="post", order_by="PostHistory.id"
    )
    potential_providers: Mapped[list["PotentialProvider"]] = relationship(
        back_populates="post", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Post {self.id} {self.type} {self.status}>"


class PostHistory(Base):
    """
    Append-only record of a post status change.

    provider_id/receiver_id are the values the post held just before the
    change. Rows are never updated.
    """

    __tablename__ = "post_histories"
    __table_args__ = (Index("idx_post_histories_post", "post_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_by_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    provider_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    receiver_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    post: Mapped["Post"] = relationship(back_populates="histories")


class PostFile(Base):
    """Extra file attached to a post (besides its photo)."""

    __tablename__ = "post_files"
    __table_args__ = (UniqueConstraint("post_id", "file_id", name="uq_post_file"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    file_id: Mapped[int] = mapped_column(
        ForeignKey("files.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    post: Mapped["Post"] = relationship(back_populates="files")
    file: Mapped["File"] = relationship()


class PotentialProvider(Base):
    """A user who has offered to fulfil a post, waiting on the creator."""

    __tablename__ = "potential_providers"
    __table_args__ = (
        UniqueConstraint("post_id", "user_id", name="uq_potential_provider"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    post: Mapped["Post"] = relationship(back_populates="potential_providers")
    user: Mapped["User"] = relationship()
