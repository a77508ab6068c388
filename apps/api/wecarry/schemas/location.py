"""Pydantic schemas for locations."""

from pydantic import BaseModel, Field


class LocationInput(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    country: str = Field("", max_length=2)
    latitude: float | None = Field(None, ge=-90, le=90)
    longitude: float | None = Field(None, ge=-180, le=180)


class LocationRead(BaseModel):
    description: str
    country: str
    latitude: float | None
    longitude: float | None

    model_config = {"from_attributes": True}
