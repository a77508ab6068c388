"""File service - uploads, signed URLs and cleanup of unlinked files."""

import logging
import os
from datetime import timedelta
from uuid import UUID

from sqlalchemy.orm import Session

from wecarry.core.config import settings
from wecarry.core.errors import NotFoundError, WeCarryError
from wecarry.db.models import File
from wecarry.db.types import utcnow
from wecarry.services import storage_client

logger = logging.getLogger(__name__)

MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024
UNLINKED_FILE_RETENTION = timedelta(weeks=4)
URL_REFRESH_MARGIN = timedelta(minutes=1)

ERROR_BAD_CONTENT_TYPE = "ErrorStoreFileBadContentType"
ERROR_TOO_LARGE = "ErrorStoreFileTooLarge"
ERROR_UNKNOWN = "ErrorUnknown"

EXTENSIONS = {
    "image/bmp": ".bmp",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/png": ".png",
    "image/jpeg": ".jpg",
    "application/pdf": ".pdf",
}


class FileStoreError(WeCarryError):
    """An upload was rejected or could not be stored."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        super().__init__(message or code)


class FileCleanupError(WeCarryError):
    """Unlinked file cleanup refused to run or failed."""

    pass


def detect_content_type(content: bytes) -> str:
    """Sniff the content type from magic bytes."""
    if content.startswith(b"BM"):
        return "image/bmp"
    if content.startswith((b"GIF87a", b"GIF89a")):
        return "image/gif"
    if content.startswith(b"RIFF") and content[8:12] == b"WEBP":
        return "image/webp"
    if content.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if content.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if content.startswith(b"%PDF-"):
        return "application/pdf"
    raise FileStoreError(ERROR_BAD_CONTENT_TYPE, "unsupported file type")


def fix_extension(name: str, content_type: str) -> str:
    """Replace name's extension with the one matching content_type."""
    expected = EXTENSIONS[content_type]
    base, ext = os.path.splitext(os.path.basename(name) or "file")
    if ext.lower() == expected or (expected == ".jpg" and ext.lower() == ".jpeg"):
        return f"{base}{ext}"
    return f"{base or 'file'}{expected}"


def store_file(db: Session, name: str, content: bytes) -> File:
    if len(content) > MAX_FILE_SIZE_BYTES:
        raise FileStoreError(
            ERROR_TOO_LARGE, f"file too large, max {MAX_FILE_SIZE_BYTES // (1024 * 1024)} MB"
        )
    content_type = detect_content_type(content)

    file = File(
        name=fix_extension(name, content_type),
        size=len(content),
        content_type=content_type,
    )
    db.add(file)
    db.flush()
    try:
        object_url = storage_client.store(file.storage_key, content_type, content)
    except Exception as exc:
        db.rollback()
        logger.exception("Failed to store file %s", file.uuid)
        raise FileStoreError(ERROR_UNKNOWN, "error storing file") from exc

    file.url = object_url.url
    file.url_expiration = object_url.expiration
    db.commit()
    db.refresh(file)
    logger.info("Stored file %s (%s, %d bytes)", file.uuid, content_type, file.size)
    return file


def find_file_by_uuid(db: Session, file_uuid: UUID) -> File:
    file = db.query(File).filter(File.uuid == file_uuid).first()
    if not file:
        raise NotFoundError("file", file_uuid)
    return file


def get_file_url(db: Session, file: File):
    """Current URL for file, refreshed when within a minute of expiring."""
    if file.url and file.url_expiration - URL_REFRESH_MARGIN > utcnow():
        return file.url, file.url_expiration

    object_url = storage_client.get_url(file.storage_key)
    file.url = object_url.url
    file.url_expiration = object_url.expiration
    db.commit()
    return file.url, file.url_expiration


def attach_file(db: Session, file_uuid: UUID) -> File:
    """Mark a file as linked to some object so cleanup keeps it."""
    file = find_file_by_uuid(db, file_uuid)
    file.linked = True
    db.flush()
    return file


def detach_file(db: Session, file: File) -> None:
    file.linked = False
    db.flush()


def delete_unlinked_files(db: Session) -> int:
    """
    Delete files left unlinked for longer than the retention period.

    Refuses to run when more than MAX_FILE_DELETE files would go, since that
    points at a linking bug rather than normal churn.
    """
    cutoff = utcnow() - UNLINKED_FILE_RETENTION
    files = (
        db.query(File)
        .filter(File.linked.is_(False), File.updated_at < cutoff)
        .order_by(File.id)
        .all()
    )
    if len(files) > settings.MAX_FILE_DELETE:
        raise FileCleanupError(
            f"attempted to delete too many files, {len(files)} > {settings.MAX_FILE_DELETE}"
        )

    deleted = 0
    for file in files:
        try:
            storage_client.remove(file.storage_key)
        except Exception:
            logger.exception("Failed to remove stored object for file %s", file.uuid)
            continue
        db.delete(file)
        deleted += 1
    db.commit()
    logger.info("Deleted %d unlinked files", deleted)
    return deleted
