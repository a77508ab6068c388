"""Centralized defaults for enums."""

from wecarry.db.enums.auth import OrgRole, UserAdminRole
from wecarry.db.enums.jobs import JobStatus
from wecarry.db.enums.posts import PostStatus, PostVisibility


DEFAULT_POST_STATUS: PostStatus = PostStatus.OPEN
DEFAULT_POST_VISIBILITY: PostVisibility = PostVisibility.SAME
DEFAULT_JOB_STATUS: JobStatus = JobStatus.PENDING
DEFAULT_ORG_ROLE: OrgRole = OrgRole.MEMBER
DEFAULT_ADMIN_ROLE: UserAdminRole = UserAdminRole.USER
