"""Delayed "you have a new message" emails."""

from __future__ import annotations

import logging

from wecarry.services import message_service, notification_service

logger = logging.getLogger(__name__)


async def process_thread_message(db, job) -> None:
    """
    Email thread participants who have not seen a message yet.

    Runs after a delay so that participants reading along in the UI, and
    bursts of messages, do not each produce an email.
    """
    message_id = (job.payload or {}).get("message_id")
    if not message_id:
        raise ValueError("Missing message_id in thread message job payload")

    message = message_service.get_message(db, int(message_id))
    if message is None:
        logger.warning("Message %s no longer exists, skipping notification", message_id)
        return

    for participant in message_service.participants_to_notify(db, message):
        await notification_service.send(
            message_service.build_new_message_notification(message, participant.user)
        )
        message_service.mark_notified(db, participant)
        logger.info(
            "Notified user %s about message %s", participant.user.uuid, message.uuid
        )
