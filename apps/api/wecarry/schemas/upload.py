"""Pydantic schemas for file uploads."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class FileRead(BaseModel):
    id: UUID
    name: str
    content_type: str
    size: int
    url: str
    url_expiration: datetime
