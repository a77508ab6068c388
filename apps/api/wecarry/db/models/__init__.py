"""SQLAlchemy ORM models."""

from wecarry.db.models.files import File
from wecarry.db.models.jobs import Job
from wecarry.db.models.locations import Location
from wecarry.db.models.meetings import Meeting, MeetingInvite, MeetingParticipant
from wecarry.db.models.messaging import Message, Thread, ThreadParticipant
from wecarry.db.models.organizations import Organization, OrganizationDomain, Trust
from wecarry.db.models.posts import Post, PostFile, PostHistory, PotentialProvider
from wecarry.db.models.users import User, UserAccessToken, UserOrganization
from wecarry.db.models.watches import Watch

__all__ = [
    "File",
    "Job",
    "Location",
    "Meeting",
    "MeetingInvite",
    "MeetingParticipant",
    "Message",
    "Organization",
    "OrganizationDomain",
    "Post",
    "PostFile",
    "PostHistory",
    "PotentialProvider",
    "Thread",
    "ThreadParticipant",
    "Trust",
    "User",
    "UserAccessToken",
    "UserOrganization",
    "Watch",
]
