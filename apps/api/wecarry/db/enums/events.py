"""Domain event kinds."""

from enum import Enum


class EventKind(str, Enum):
    """Fixed set of domain events listeners can subscribe to."""

    USER_CREATED = "api:user:created"
    AUTH_USER_LOGGED_IN = "api:auth:user:loggedin"
    MESSAGE_CREATED = "api:message:created"
    POST_CREATED = "api:post:created"
    POST_STATUS_UPDATED = "api:post:status:updated"
    MEETING_PARTICIPANT_ADDED = "api:meeting:participant:added"
    MEETING_PARTICIPANT_REMOVED = "api:meeting:participant:removed"
    POTENTIAL_PROVIDER_CREATED = "api:potentialprovider:created"
    POTENTIAL_PROVIDER_REJECTED = "api:potentialprovider:rejected"
    POTENTIAL_PROVIDER_SELF_DESTROYED = "api:potentialprovider:selfdestroyed"
