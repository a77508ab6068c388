"""Pydantic schemas for login."""

from uuid import UUID

from pydantic import BaseModel


class OrganizationOption(BaseModel):
    id: UUID
    name: str


class LoginResponse(BaseModel):
    """
    Result of starting a login.

    redirect_url is set when the org is known; otherwise organizations lists
    the choices and the client calls again with org_id.
    """
    redirect_url: str | None = None
    organizations: list[OrganizationOption] = []
