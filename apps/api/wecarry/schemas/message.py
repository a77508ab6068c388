"""Pydantic schemas for threads and messages."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.schemas.post import UserSummary


class MessageCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=4096)
    thread_id: UUID | None = None


class MessageRead(BaseModel):
    id: UUID
    thread_id: UUID
    sender: UserSummary
    content: str
    created_at: datetime


class ThreadRead(BaseModel):
    id: UUID
    post_id: UUID
    post_title: str
    participants: list[UserSummary]
    unread_message_count: int = 0
    last_viewed_at: datetime | None = None
    updated_at: datetime


class LastViewedUpdate(BaseModel):
    time: datetime | None = None
