"""Pydantic schemas for posts."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.db.enums import PostSize, PostStatus, PostType, PostVisibility
from wecarry.schemas.location import LocationInput, LocationRead


class PostCreate(BaseModel):
    """
    Request to create a post.

    Required fields are optional here so missing ones come back as per-field
    validation errors from the service instead of a schema failure.
    """
    type: PostType | None = None
    organization_id: UUID | None = None
    title: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=4000)
    size: PostSize | None = None
    url: str | None = Field(None, max_length=1024)
    kilograms: float | None = Field(None, ge=0)
    needed_before: date | None = None
    needed_after: date | None = None
    visibility: PostVisibility | None = None
    status: PostStatus | None = None
    destination: LocationInput | None = None
    origin: LocationInput | None = None
    meeting_id: UUID | None = None
    photo_id: UUID | None = None


class PostUpdate(BaseModel):
    """
    Request to update a post (partial).

    origin is the exception: leaving it out removes the post's origin.
    """
    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    size: PostSize | None = None
    url: str | None = Field(None, max_length=1024)
    kilograms: float | None = Field(None, ge=0)
    needed_before: date | None = None
    needed_after: date | None = None
    visibility: PostVisibility | None = None
    destination: LocationInput | None = None
    origin: LocationInput | None = None
    meeting_id: UUID | None = None
    photo_id: UUID | None = None


class PostStatusUpdate(BaseModel):
    status: PostStatus
    provider_id: UUID | None = Field(
        None, description="Potential provider (user uuid) being accepted"
    )


class UserSummary(BaseModel):
    id: UUID
    nickname: str


class PostRead(BaseModel):
    id: UUID
    type: PostType
    status: PostStatus
    title: str
    description: str | None
    size: PostSize
    url: str | None
    kilograms: float | None
    needed_before: date | None
    needed_after: date | None
    visibility: PostVisibility
    organization_id: UUID
    created_by: UserSummary
    provider: UserSummary | None = None
    receiver: UserSummary | None = None
    destination: LocationRead
    origin: LocationRead | None = None
    meeting_id: UUID | None = None
    photo_id: UUID | None = None
    is_editable: bool = False
    allowed_statuses: list[PostStatus] = []
    thread_id: UUID | None = None
    created_at: datetime
    updated_at: datetime


class PostHistoryRead(BaseModel):
    from_status: PostStatus | None
    status: PostStatus
    changed_by_id: UUID | None = None
    provider_id: UUID | None = None
    receiver_id: UUID | None = None
    created_at: datetime


class PotentialProviderRead(BaseModel):
    user: UserSummary
    created_at: datetime
