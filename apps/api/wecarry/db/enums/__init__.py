"""Enum definitions for application constants."""

from wecarry.db.enums.auth import AuthType, OrgRole, UserAdminRole
from wecarry.db.enums.defaults import (
    DEFAULT_ADMIN_ROLE,
    DEFAULT_JOB_STATUS,
    DEFAULT_ORG_ROLE,
    DEFAULT_POST_STATUS,
    DEFAULT_POST_VISIBILITY,
)
from wecarry.db.enums.events import EventKind
from wecarry.db.enums.jobs import JobStatus, JobType
from wecarry.db.enums.permissions import (
    ROLES_CAN_CREATE_ORGANIZATION,
    ROLES_CAN_MANAGE_TRUST,
    SITE_ADMIN_ROLES,
)
from wecarry.db.enums.posts import PostRole, PostSize, PostStatus, PostType, PostVisibility

__all__ = [
    "AuthType",
    "DEFAULT_ADMIN_ROLE",
    "DEFAULT_JOB_STATUS",
    "DEFAULT_ORG_ROLE",
    "DEFAULT_POST_STATUS",
    "DEFAULT_POST_VISIBILITY",
    "EventKind",
    "JobStatus",
    "JobType",
    "OrgRole",
    "PostRole",
    "PostSize",
    "PostStatus",
    "PostType",
    "PostVisibility",
    "ROLES_CAN_CREATE_ORGANIZATION",
    "ROLES_CAN_MANAGE_TRUST",
    "SITE_ADMIN_ROLES",
    "UserAdminRole",
]
