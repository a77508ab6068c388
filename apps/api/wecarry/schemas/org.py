"""Pydantic schemas for organizations."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from wecarry.db.enums import AuthType


class OrganizationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    url: str | None = Field(None, max_length=255)
    auth_type: AuthType = AuthType.GOOGLE
    auth_config: dict = {}


class OrganizationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    url: str | None = Field(None, max_length=255)
    auth_type: AuthType | None = None
    auth_config: dict | None = None


class OrganizationRead(BaseModel):
    id: UUID
    name: str
    url: str | None
    auth_type: str
    domains: list[str] = []
    trusted_organizations: list[UUID] = []
    created_at: datetime


class DomainCreate(BaseModel):
    domain: str = Field(..., min_length=3, max_length=255)
    auth_type: AuthType | None = None
    auth_config: dict | None = None


class DomainRead(BaseModel):
    domain: str
    auth_type: str | None = None


class TrustCreate(BaseModel):
    secondary_id: UUID
