"""Notification email job handlers."""

from __future__ import annotations

import logging

from wecarry.services import notification_service
from wecarry.services.notification_service import NotificationMessage

logger = logging.getLogger(__name__)


async def process_send_notification(db, job) -> None:
    """Render and send a queued NotificationMessage."""
    payload = job.payload or {}
    if not payload.get("template"):
        raise ValueError("Missing template in notification job payload")
    await notification_service.send(NotificationMessage.from_payload(payload))
