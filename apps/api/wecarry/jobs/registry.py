"""Job handler registry."""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from wecarry.db.enums import JobType
from wecarry.jobs.handlers import files, notifications, thread_message, tokens

JobHandler = Callable[[object, object], Awaitable[None]]

JOB_HANDLERS: Mapping[str, JobHandler] = {
    JobType.THREAD_MESSAGE.value: thread_message.process_thread_message,
    JobType.SEND_NOTIFICATION.value: notifications.process_send_notification,
    JobType.FILE_CLEANUP.value: files.process_file_cleanup,
    JobType.TOKEN_CLEANUP.value: tokens.process_token_cleanup,
}


def resolve_job_handler(job_type: str) -> JobHandler:
    handler = JOB_HANDLERS.get(job_type)
    if not handler:
        raise ValueError(f"Unknown job type: {job_type}")
    return handler
