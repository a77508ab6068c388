"""File maintenance job handlers."""

from __future__ import annotations

import logging

from wecarry.services import file_service

logger = logging.getLogger(__name__)


async def process_file_cleanup(db, job) -> None:
    deleted = file_service.delete_unlinked_files(db)
    logger.info("File cleanup job %s deleted %d unlinked files", job.id, deleted)
