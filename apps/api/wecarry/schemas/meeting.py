"""Pydantic schemas for meetings."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.schemas.location import LocationInput, LocationRead
from wecarry.schemas.post import UserSummary


class MeetingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    more_info_url: str | None = Field(None, max_length=1024)
    start_date: date
    end_date: date
    location: LocationInput
    image_file_id: UUID | None = None


class MeetingUpdate(BaseModel):
    """Request to update a meeting (partial)."""
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = Field(None, max_length=4000)
    more_info_url: str | None = Field(None, max_length=1024)
    start_date: date | None = None
    end_date: date | None = None
    location: LocationInput | None = None
    image_file_id: UUID | None = None


class MeetingRead(BaseModel):
    id: UUID
    name: str
    description: str | None
    more_info_url: str | None
    start_date: date
    end_date: date
    location: LocationRead
    created_by: UserSummary
    image_file_id: UUID | None = None
    invite_code: UUID | None = None
    can_update: bool = False
    created_at: datetime


class MeetingInvitesCreate(BaseModel):
    emails: list[str] = Field(..., min_length=1, max_length=200)


class MeetingInviteRead(BaseModel):
    email: str
    inviter: UserSummary
    created_at: datetime


class MeetingInvitesResult(BaseModel):
    created: list[MeetingInviteRead]
    bad_emails: list[str]


class MeetingJoin(BaseModel):
    code: str = Field(..., min_length=1, description="Meeting invite code or invite secret")


class MeetingParticipantRead(BaseModel):
    user: UserSummary
    is_organizer: bool
    created_at: datetime
