"""Typed event payloads, one per event kind."""

from __future__ import annotations

from dataclasses import dataclass

from wecarry.db.enums import EventKind, PostStatus


@dataclass(frozen=True)
class UserCreatedEventData:
    user_id: int


@dataclass(frozen=True)
class AuthLoggedInEventData:
    user_id: int
    organization_id: int


@dataclass(frozen=True)
class MessageEventData:
    message_id: int


@dataclass(frozen=True)
class PostCreatedEventData:
    post_id: int


@dataclass(frozen=True)
class PostStatusEventData:
    post_id: int
    old_status: PostStatus
    new_status: PostStatus
    old_provider_id: int | None = None
    old_receiver_id: int | None = None


@dataclass(frozen=True)
class MeetingParticipantEventData:
    meeting_id: int
    user_id: int


@dataclass(frozen=True)
class PotentialProviderEventData:
    post_id: int
    user_id: int


EventData = (
    UserCreatedEventData
    | AuthLoggedInEventData
    | MessageEventData
    | PostCreatedEventData
    | PostStatusEventData
    | MeetingParticipantEventData
    | PotentialProviderEventData
)

PAYLOAD_TYPES: dict[EventKind, type] = {
    EventKind.USER_CREATED: UserCreatedEventData,
    EventKind.AUTH_USER_LOGGED_IN: AuthLoggedInEventData,
    EventKind.MESSAGE_CREATED: MessageEventData,
    EventKind.POST_CREATED: PostCreatedEventData,
    EventKind.POST_STATUS_UPDATED: PostStatusEventData,
    EventKind.MEETING_PARTICIPANT_ADDED: MeetingParticipantEventData,
    EventKind.MEETING_PARTICIPANT_REMOVED: MeetingParticipantEventData,
    EventKind.POTENTIAL_PROVIDER_CREATED: PotentialProviderEventData,
    EventKind.POTENTIAL_PROVIDER_REJECTED: PotentialProviderEventData,
    EventKind.POTENTIAL_PROVIDER_SELF_DESTROYED: PotentialProviderEventData,
}


@dataclass(frozen=True)
class Event:
    """
    A domain event.

    The payload type is checked against the kind on construction, so a
    listener registered for a kind always receives the matching dataclass.
    """

    kind: EventKind
    data: EventData
    message: str = ""

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.data, expected):
            raise TypeError(
                f"{self.kind.value} expects {expected.__name__}, "
                f"got {type(self.data).__name__}"
            )
