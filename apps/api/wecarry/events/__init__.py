"""Domain events: typed payloads, dispatcher and post-commit emission."""

from wecarry.events.dispatcher import EventDispatcher, ListenerRegistrationError
from wecarry.events.outbox import emit_after_commit, get_dispatcher, set_dispatcher
from wecarry.events.types import (
    AuthLoggedInEventData,
    Event,
    MeetingParticipantEventData,
    MessageEventData,
    PostCreatedEventData,
    PostStatusEventData,
    PotentialProviderEventData,
    UserCreatedEventData,
)

__all__ = [
    "AuthLoggedInEventData",
    "Event",
    "EventDispatcher",
    "ListenerRegistrationError",
    "MeetingParticipantEventData",
    "MessageEventData",
    "PostCreatedEventData",
    "PostStatusEventData",
    "PotentialProviderEventData",
    "UserCreatedEventData",
    "emit_after_commit",
    "get_dispatcher",
    "set_dispatcher",
]
