"""SQLAlchemy ORM models."""

from __future__ import annotations

from uuid import UUID, uuid4
from datetime import datetime

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from wecarry.db.base import Base
from wecarry.db.types import utcnow


class File(Base):
    """
    Uploaded object (photo, logo, attachment).

    Content lives in object storage under "{uuid}/{name}". url holds the last
    generated (possibly presigned) URL and url_expiration when it stops working.
    """

    __tablename__ = "files"
    __table_args__ = (Index("idx_files_linked_updated", "linked", "updated_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    uuid: Mapped[UUID] = mapped_column(unique=True, default=uuid4, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    content_type: Mapped[str] = mapped_column(String(100), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False, default="")
    url_expiration: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    linked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def storage_key(self) -> str:
        return f"{self.uuid}/{self.name}"
