from datetime import datetime
import uuid

from sqlalchemy import JSON, Uuid
from sqlalchemy.orm import DeclarativeBase

from wecarry.db.types import UTCDateTime


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    type_annotation_map = {
        datetime: UTCDateTime(),
        uuid.UUID: Uuid(),
        dict: JSON(),
    }
