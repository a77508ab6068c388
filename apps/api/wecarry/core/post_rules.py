"""
Post status transition rules.

Single source of truth for which status changes are legal. Permission
checks (who may make a change) live in post_service.
"""

from wecarry.db.enums import PostStatus


STATUS_TRANSITIONS: dict[PostStatus, frozenset[PostStatus]] = {
    PostStatus.OPEN: frozenset({PostStatus.COMMITTED, PostStatus.REMOVED}),
    PostStatus.COMMITTED: frozenset(
        {PostStatus.OPEN, PostStatus.ACCEPTED, PostStatus.REMOVED}
    ),
    PostStatus.ACCEPTED: frozenset(
        {
            PostStatus.OPEN,
            PostStatus.DELIVERED,
            PostStatus.RECEIVED,
            PostStatus.REMOVED,
        }
    ),
    PostStatus.DELIVERED: frozenset({PostStatus.COMPLETED}),
    PostStatus.RECEIVED: frozenset({PostStatus.COMPLETED}),
    PostStatus.COMPLETED: frozenset(),
    PostStatus.REMOVED: frozenset(),
}

FORWARD_STATES = frozenset(
    {
        PostStatus.COMMITTED,
        PostStatus.ACCEPTED,
        PostStatus.DELIVERED,
        PostStatus.RECEIVED,
        PostStatus.COMPLETED,
    }
)

# Statuses in which the creator may still edit a post
CREATOR_EDITABLE_STATES = frozenset({PostStatus.OPEN, PostStatus.COMMITTED})


def _as_status(value: PostStatus | str) -> PostStatus:
    return value if isinstance(value, PostStatus) else PostStatus(value)


def is_valid_transition(old: PostStatus | str, new: PostStatus | str) -> bool:
    """Same-status updates are always valid; otherwise the edge must exist."""
    old_status = _as_status(old)
    new_status = _as_status(new)
    if old_status == new_status:
        return True
    return new_status in STATUS_TRANSITIONS[old_status]


def is_forward_state(status: PostStatus | str) -> bool:
    return _as_status(status) in FORWARD_STATES


def allowed_next_statuses(status: PostStatus | str) -> list[PostStatus]:
    """Statuses reachable in one step, in declaration order."""
    targets = STATUS_TRANSITIONS[_as_status(status)]
    return [s for s in PostStatus if s in targets]
