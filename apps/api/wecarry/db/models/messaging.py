"""SQLAlchemy ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING

from uuid import UUID, uuid4
from datetime import datetime

from sqlalchemy import (
    ForeignKey,
    Index,
    Integer,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wecarry.db.base import Base
from wecarry.db.types import utcnow

if TYPE_CHECKING:
    from wecarry.db.models import Post, User


class Thread(Base):
    """Conversation about a post between its creator and one other user."""

    __tablename__ = "threads"
    __table_args__ = (Index("idx_threads_post", "post_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    post: Mapped["Post"] = relationship()
    participants: Mapped[list["ThreadParticipant"]] = relationship(
        back_populates="thread", cascade="all, delete-orphan"
    )
    messages: Mapped[list["Message"]] = relationship(
        back_populates="thread", order_by="Message.id", cascade="all, delete-orphan"
    )


class ThreadParticipant(Base):
    """
    Membership of a user in a thread.

    last_viewed_at drives unread counts; last_notified_at keeps the delayed
    new-message email from firing twice for the same messages.
    """

    __tablename__ = "thread_participants"
    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_thread_participant"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    last_viewed_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    last_notified_at: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    thread: Mapped["Thread"] = relationship(back_populates="participants")
    user: Mapped["User"] = relationship()


class Message(Base):
    """Immutable chat message inside a thread."""

    __tablename__ = "messages"
    __table_args__ = (Index("idx_messages_thread_created", "thread_id", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    thread_id: Mapped[int] = mapped_column(
        ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    sent_by_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)

    thread: Mapped["Thread"] = relationship(back_populates="messages")
    sent_by: Mapped["User"] = relationship()
