"""
Event listeners.

Every listener opens its own session: listeners run after the triggering
transaction has committed, when that session can no longer be used.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Callable

from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.db.enums import EventKind, JobType, PostStatus, PostType
from wecarry.db.models import Meeting, User
from wecarry.db.types import utcnow
from wecarry.events.dispatcher import EventDispatcher
from wecarry.events.types import (
    Event,
    MeetingParticipantEventData,
    MessageEventData,
    PostCreatedEventData,
    PostStatusEventData,
    PotentialProviderEventData,
    UserCreatedEventData,
)
from wecarry.services import (
    access_token_service,
    job_service,
    meeting_service,
    notification_service,
    post_service,
    user_service,
    watch_service,
)
from wecarry.services.notification_service import NotificationError, NotificationMessage

logger = logging.getLogger(__name__)

RECIPIENT_CREATOR = "creator"
RECIPIENT_PROVIDER = "provider"
RECIPIENT_OLD_PROVIDER = "old_provider"

# (old, new) -> (template, who hears about it). Only REQUEST posts notify.
REQUEST_STATUS_NOTIFICATIONS: dict[tuple[PostStatus, PostStatus], tuple[str, str]] = {
    (PostStatus.OPEN, PostStatus.COMMITTED): (
        "request_from_open_to_committed", RECIPIENT_CREATOR,
    ),
    (PostStatus.COMMITTED, PostStatus.OPEN): (
        "request_from_committed_to_open", RECIPIENT_OLD_PROVIDER,
    ),
    (PostStatus.COMMITTED, PostStatus.ACCEPTED): (
        "request_from_committed_to_accepted", RECIPIENT_PROVIDER,
    ),
    (PostStatus.COMMITTED, PostStatus.REMOVED): (
        "request_from_committed_to_removed", RECIPIENT_OLD_PROVIDER,
    ),
    (PostStatus.ACCEPTED, PostStatus.OPEN): (
        "request_from_accepted_to_open", RECIPIENT_OLD_PROVIDER,
    ),
    (PostStatus.ACCEPTED, PostStatus.DELIVERED): (
        "request_from_accepted_to_delivered", RECIPIENT_CREATOR,
    ),
    (PostStatus.ACCEPTED, PostStatus.RECEIVED): (
        "request_from_accepted_to_received", RECIPIENT_PROVIDER,
    ),
    (PostStatus.ACCEPTED, PostStatus.REMOVED): (
        "request_from_accepted_to_removed", RECIPIENT_OLD_PROVIDER,
    ),
    (PostStatus.DELIVERED, PostStatus.COMPLETED): (
        "request_from_delivered_to_completed", RECIPIENT_PROVIDER,
    ),
    (PostStatus.RECEIVED, PostStatus.COMPLETED): (
        "request_from_received_to_completed", RECIPIENT_PROVIDER,
    ),
}


@dataclass
class CleanupState:
    """Next time the access token cleanup may run, and how far to push it each run."""

    next_cleanup_after: datetime = field(
        default_factory=lambda: datetime.min.replace(tzinfo=timezone.utc)
    )
    delay: timedelta = field(
        default_factory=lambda: timedelta(minutes=settings.ACCESS_TOKEN_CLEANUP_DELAY_MINUTES)
    )

    def claim(self, now: datetime) -> bool:
        """True (and pushes the next run out) when a cleanup is due at now."""
        if now < self.next_cleanup_after:
            return False
        self.next_cleanup_after = now + self.delay
        return True

    def reset(self) -> None:
        self.next_cleanup_after = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class ListenerContext:
    session_factory: Callable[[], Session]
    cleanup_state: CleanupState


def _queue(db: Session, message: NotificationMessage) -> bool:
    try:
        notification_service.queue_notification(db, message)
    except NotificationError as exc:
        logger.warning("Skipping %s notification: %s", message.template, exc)
        return False
    return True


# =============================================================================
# Listeners
# =============================================================================

def user_created(event: Event, ctx: ListenerContext) -> None:
    data: UserCreatedEventData = event.data
    logger.info("User created: %s", event.message)
    db = ctx.session_factory()
    try:
        user = user_service.get_user(db, data.user_id)
        if user is None:
            logger.error("User %s from user-created event not found", data.user_id)
            return
        welcome = notification_service.base_data()
        welcome.update({"userEmail": user.email, "firstName": user.first_name})
        _queue(
            db,
            notification_service.message_for_user(
                notification_service.TEMPLATE_NEW_USER_WELCOME, user, welcome
            ),
        )
    finally:
        db.close()


def user_access_tokens_cleanup(event: Event, ctx: ListenerContext) -> None:
    if not ctx.cleanup_state.claim(utcnow()):
        return
    db = ctx.session_factory()
    try:
        deleted = access_token_service.delete_expired(db)
    finally:
        db.close()
    logger.info("Deleted %d expired user access tokens during cleanup", deleted)


def send_new_message_notification(event: Event, ctx: ListenerContext) -> None:
    data: MessageEventData = event.data
    job = job_service.submit_delayed(
        ctx.session_factory,
        JobType.THREAD_MESSAGE,
        timedelta(seconds=settings.NEW_MESSAGE_NOTIFICATION_DELAY_SECONDS),
        {"message_id": data.message_id},
    )
    if job is None:
        logger.error("New message job not started for message %s", data.message_id)


def send_post_status_updated_notification(event: Event, ctx: ListenerContext) -> None:
    data: PostStatusEventData = event.data
    db = ctx.session_factory()
    try:
        post = post_service.get_post(db, data.post_id)
        if post is None:
            logger.error("Post %s from status event not found", data.post_id)
            return
        if post.type != PostType.REQUEST.value:
            return

        entry = REQUEST_STATUS_NOTIFICATIONS.get((data.old_status, data.new_status))
        if entry is None:
            logger.debug(
                "No notification for %s -> %s", data.old_status.value, data.new_status.value
            )
            return
        template, recipient_role = entry

        old_provider = (
            user_service.get_user(db, data.old_provider_id) if data.old_provider_id else None
        )
        recipient = {
            RECIPIENT_CREATOR: post.created_by,
            RECIPIENT_PROVIDER: post.provider,
            RECIPIENT_OLD_PROVIDER: old_provider,
        }[recipient_role]
        if recipient is None:
            logger.warning(
                "No %s to notify for post %s (%s)", recipient_role, post.uuid, template
            )
            return

        template_data = notification_service.post_data(post, provider=post.provider or old_provider)
        template_data["oldStatus"] = data.old_status.value
        template_data["newStatus"] = data.new_status.value
        _queue(db, notification_service.message_for_user(template, recipient, template_data))
    finally:
        db.close()


def send_post_created_notifications(event: Event, ctx: ListenerContext) -> None:
    data: PostCreatedEventData = event.data
    db = ctx.session_factory()
    try:
        post = post_service.get_post(db, data.post_id)
        if post is None:
            logger.error("Post %s from post-created event not found", data.post_id)
            return
        template = (
            notification_service.TEMPLATE_NEW_REQUEST
            if post.type == PostType.REQUEST.value
            else notification_service.TEMPLATE_NEW_OFFER
        )
        template_data = notification_service.post_data(post)
        queued = 0
        for user in post_service.get_audience(db, post):
            if _queue(db, notification_service.message_for_user(template, user, template_data)):
                queued += 1
        logger.info("Queued %d new post notifications for post %s", queued, post.uuid)
    finally:
        db.close()


def send_post_watch_notifications(event: Event, ctx: ListenerContext) -> None:
    """Tell watch owners about a new matching post, unless the audience email already reached them."""
    data: PostCreatedEventData = event.data
    db = ctx.session_factory()
    try:
        post = post_service.get_post(db, data.post_id)
        if post is None:
            logger.error("Post %s from post-created event not found", data.post_id)
            return
        audience_ids = {user.id for user in post_service.get_audience(db, post)}
        queued = 0
        for watch in watch_service.find_matching_watches(db, post):
            if watch.owner_id in audience_ids:
                continue
            template_data = notification_service.post_data(post)
            template_data["watchName"] = watch.name
            message = notification_service.message_for_user(
                notification_service.TEMPLATE_POST_MATCHES_WATCH, watch.owner, template_data
            )
            if _queue(db, message):
                queued += 1
        logger.info("Queued %d watch notifications for post %s", queued, post.uuid)
    finally:
        db.close()


def _potential_provider_notification(
    event: Event, ctx: ListenerContext, template: str, notify_provider: bool
) -> None:
    data: PotentialProviderEventData = event.data
    db = ctx.session_factory()
    try:
        post = post_service.get_post(db, data.post_id)
        provider = user_service.get_user(db, data.user_id)
        if post is None or provider is None:
            logger.error(
                "Post %s or user %s from potential provider event not found",
                data.post_id,
                data.user_id,
            )
            return
        recipient = provider if notify_provider else post.created_by
        template_data = notification_service.post_data(post, provider=provider)
        _queue(db, notification_service.message_for_user(template, recipient, template_data))
    finally:
        db.close()


def potential_provider_created(event: Event, ctx: ListenerContext) -> None:
    _potential_provider_notification(
        event, ctx, notification_service.TEMPLATE_POTENTIAL_PROVIDER_CREATED, False
    )


def potential_provider_self_destroyed(event: Event, ctx: ListenerContext) -> None:
    _potential_provider_notification(
        event, ctx, notification_service.TEMPLATE_POTENTIAL_PROVIDER_SELF_DESTROYED, False
    )


def potential_provider_rejected(event: Event, ctx: ListenerContext) -> None:
    _potential_provider_notification(
        event, ctx, notification_service.TEMPLATE_POTENTIAL_PROVIDER_REJECTED, True
    )


def meeting_participant_changed(event: Event, ctx: ListenerContext) -> None:
    data: MeetingParticipantEventData = event.data
    change = "added" if event.kind == EventKind.MEETING_PARTICIPANT_ADDED else "removed"
    logger.info("Meeting participant %s: %s", change, event.message)
    db = ctx.session_factory()
    try:
        meeting = db.query(Meeting).filter(Meeting.id == data.meeting_id).first()
        participant = db.query(User).filter(User.id == data.user_id).first()
        if meeting is None or participant is None:
            return
        template_data = notification_service.base_data()
        template_data.update(
            {
                "meetingName": meeting.name,
                "participantNickname": participant.nickname,
                "change": change,
            }
        )
        for organizer in meeting_service.list_organizers(db, meeting):
            if organizer.id == participant.id:
                continue
            _queue(
                db,
                notification_service.message_for_user(
                    notification_service.TEMPLATE_MEETING_PARTICIPANT_CHANGED,
                    organizer,
                    template_data,
                ),
            )
    finally:
        db.close()


# =============================================================================
# Registration
# =============================================================================

LISTENERS: list[tuple[EventKind, str, Callable[[Event, ListenerContext], None]]] = [
    (EventKind.USER_CREATED, "user-created", user_created),
    (
        EventKind.AUTH_USER_LOGGED_IN,
        "trigger-user-access-tokens-cleanup",
        user_access_tokens_cleanup,
    ),
    (EventKind.MESSAGE_CREATED, "send-new-message-notification", send_new_message_notification),
    (
        EventKind.POST_STATUS_UPDATED,
        "post-status-updated-notification",
        send_post_status_updated_notification,
    ),
    (EventKind.POST_CREATED, "post-created-notification", send_post_created_notifications),
    (EventKind.POST_CREATED, "post-created-watch-notification", send_post_watch_notifications),
    (
        EventKind.POTENTIAL_PROVIDER_CREATED,
        "potentialprovider-created-notification",
        potential_provider_created,
    ),
    (
        EventKind.POTENTIAL_PROVIDER_SELF_DESTROYED,
        "potentialprovider-self-destroyed-notification",
        potential_provider_self_destroyed,
    ),
    (
        EventKind.POTENTIAL_PROVIDER_REJECTED,
        "potentialprovider-rejected-notification",
        potential_provider_rejected,
    ),
    (
        EventKind.MEETING_PARTICIPANT_ADDED,
        "meeting-participant-added-notification",
        meeting_participant_changed,
    ),
    (
        EventKind.MEETING_PARTICIPANT_REMOVED,
        "meeting-participant-removed-notification",
        meeting_participant_changed,
    ),
]


def register_listeners(
    dispatcher: EventDispatcher,
    cleanup_state: CleanupState,
    session_factory: Callable[[], Session] | None = None,
) -> ListenerContext:
    """Register every listener once. A second call raises ListenerRegistrationError."""
    if session_factory is None:
        from wecarry.db.session import SessionLocal

        session_factory = SessionLocal
    ctx = ListenerContext(session_factory=session_factory, cleanup_state=cleanup_state)
    for kind, name, listener in LISTENERS:
        dispatcher.register(kind, name, partial(listener, ctx=ctx))
    return ctx


def build_default_dispatcher(
    session_factory: Callable[[], Session] | None = None,
) -> EventDispatcher:
    dispatcher = EventDispatcher()
    register_listeners(dispatcher, CleanupState(), session_factory)
    return dispatcher
