"""Pydantic schemas for the current user."""

from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.schemas.auth import OrganizationOption
from wecarry.schemas.location import LocationInput, LocationRead


class Preferences(BaseModel):
    notifications_opt_out: bool | None = None
    weight_unit: str | None = None
    max_distance_km: float | None = Field(None, ge=0)


class MeRead(BaseModel):
    id: UUID
    email: str
    nickname: str
    first_name: str
    last_name: str
    admin_role: str
    photo_url: str | None = None
    location: LocationRead | None = None
    preferences: dict
    organization: OrganizationOption
    organizations: list[OrganizationOption]


class ProfileUpdate(BaseModel):
    nickname: str | None = Field(None, min_length=1, max_length=255)
    location: LocationInput | None = None
