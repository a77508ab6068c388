"""Post-related enums."""

from enum import Enum


class PostType(str, Enum):
    """Kind of post: someone asking for an item, or someone offering one."""

    REQUEST = "REQUEST"
    OFFER = "OFFER"


class PostStatus(str, Enum):
    """
    Lifecycle states of a post.

    - OPEN: created, waiting for a provider
    - COMMITTED: a potential provider has offered to carry it
    - ACCEPTED: the creator accepted a provider
    - DELIVERED: the provider says it was handed over
    - RECEIVED: the receiver confirms it arrived
    - COMPLETED: closed out
    - REMOVED: withdrawn by its creator (never hard-deleted)
    """

    OPEN = "OPEN"
    COMMITTED = "COMMITTED"
    ACCEPTED = "ACCEPTED"
    DELIVERED = "DELIVERED"
    RECEIVED = "RECEIVED"
    COMPLETED = "COMPLETED"
    REMOVED = "REMOVED"


class PostSize(str, Enum):
    """Rough size of the item to be carried."""

    TINY = "TINY"
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"
    XLARGE = "XLARGE"


class PostVisibility(str, Enum):
    """Which organizations may see a post."""

    SAME = "SAME"  # Only the post's own organization
    TRUSTED = "TRUSTED"  # Own organization plus trusted organizations
    ALL = "ALL"


class PostRole(str, Enum):
    """How a user relates to a post, for "my posts" listings."""

    CREATEDBY = "CREATEDBY"
    PROVIDING = "PROVIDING"
    RECEIVING = "RECEIVING"
