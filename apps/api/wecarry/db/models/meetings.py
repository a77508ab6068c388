"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uuid import UUID, uuid4
from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wecarry.db.base import Base
from wecarry.db.types import utcnow

if TYPE_CHECKING:
    from wecarry.db.models import File, Location, Post, User


class Meeting(Base):
    """
    A dated gathering (conference, event) that posts can be delivered to.

    A post tied to a meeting takes its destination from the meeting location.
    """

    __tablename__ = "meetings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    more_info_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    invite_code: Mapped[UUID | None] = mapped_column(unique=True, nullable=True)
    created_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    location_id: Mapped[int] = mapped_column(ForeignKey("locations.id"), nullable=False)
    image_file_id: Mapped[int | None] = mapped_column(
        ForeignKey("files.id", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    # Relationships
    created_by: Mapped["User"] = relationship()
    location: Mapped["Location"] = relationship()
    image: Mapped["File | None"] = relationship()
    invites: Mapped[list["MeetingInvite"]] = relationship(
        back_populates="meeting", cascade="all, delete-orphan"
    )
    participants: Mapped[list["MeetingParticipant"]] = relationship(
        back_populates="meeting", cascade="all, delete-orphan"
    )
    posts: Mapped[list["Post"]] = relationship(back_populates="meeting")


class MeetingInvite(Base):
    """Invitation to a meeting, keyed by email."""

    __tablename__ = "meeting_invites"
    __table_args__ = (UniqueConstraint("meeting_id", "email", name="uq_meeting_invite_email"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
    )
    inviter_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    secret: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    meeting: Mapped["Meeting"] = relationship(back_populates="invites")
    inviter: Mapped["User"] = relationship()


class MeetingParticipant(Base):
    """A user taking part in a meeting; organizers have is_organizer set."""

    __tablename__ = "meeting_participants"
    __table_args__ = (
        UniqueConstraint("meeting_id", "user_id", name="uq_meeting_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[int] = mapped_column(
        ForeignKey("meetings.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    invite_id: Mapped[int | None] = mapped_column(
        ForeignKey("meeting_invites.id", ondelete="SET NULL"), nullable=True
    )
    is_organizer: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    meeting: Mapped["Meeting"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship()
