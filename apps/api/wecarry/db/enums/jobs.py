"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of background jobs."""

    THREAD_MESSAGE = "thread_message"  # Delayed "you have a new message" email
    SEND_NOTIFICATION = "send_notification"
    FILE_CLEANUP = "file_cleanup"
    TOKEN_CLEANUP = "token_cleanup"


class JobStatus(str, Enum):
    """Status of background jobs."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
