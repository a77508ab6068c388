"""Pydantic schemas for watches (saved post searches)."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.db.enums import PostSize
from wecarry.schemas.location import LocationInput, LocationRead


class WatchCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    destination: LocationInput | None = None
    meeting_id: UUID | None = None
    search_text: str | None = Field(None, max_length=255)
    size: PostSize | None = None


class WatchUpdate(BaseModel):
    """Request to update a watch. Fields that are sent replace the stored value, null clears it."""
    name: str | None = Field(None, min_length=1, max_length=255)
    destination: LocationInput | None = None
    meeting_id: UUID | None = None
    search_text: str | None = Field(None, max_length=255)
    size: PostSize | None = None


class WatchOwner(BaseModel):
    id: UUID
    nickname: str
    avatar_url: str | None = None


class WatchRead(BaseModel):
    id: UUID
    name: str
    owner: WatchOwner
    destination: LocationRead | None = None
    meeting_id: UUID | None = None
    search_text: str | None = None
    size: PostSize | None = None
    created_at: datetime
