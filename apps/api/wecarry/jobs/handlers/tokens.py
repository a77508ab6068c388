"""Access token maintenance job handlers."""

from __future__ import annotations

import logging

from wecarry.services import access_token_service

logger = logging.getLogger(__name__)


async def process_token_cleanup(db, job) -> None:
    deleted = access_token_service.delete_expired(db)
    logger.info("Token cleanup job %s deleted %d expired tokens", job.id, deleted)
