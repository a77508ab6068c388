"""Object storage: S3 (or S3-compatible) with a local-directory fallback."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import boto3
from botocore.client import BaseClient
from botocore.config import Config

from wecarry.core.config import settings
from wecarry.db.types import utcnow

URL_LIFESPAN = timedelta(minutes=10)
# Local files are served by the API and never expire
NEVER_EXPIRES = datetime(9999, 12, 31, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ObjectURL:
    url: str
    expiration: datetime


def _normalize_endpoint(endpoint_url: str | None) -> str | None:
    if endpoint_url:
        return endpoint_url.rstrip("/")
    return None


def _build_s3_config() -> Config | None:
    style = (settings.S3_URL_STYLE or "").strip().lower()
    if style in {"path", "virtual"}:
        return Config(s3={"addressing_style": style})
    return None


def get_s3_client(
    *,
    region: str | None = None,
    endpoint_url: str | None = None,
) -> BaseClient:
    """Return a configured S3 client (supports S3-compatible endpoints)."""
    return boto3.client(
        "s3",
        region_name=region or settings.S3_REGION or None,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID or None,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY or None,
        endpoint_url=_normalize_endpoint(endpoint_url or settings.S3_ENDPOINT_URL),
        config=_build_s3_config(),
    )


def _local_path(key: str) -> str:
    root = settings.LOCAL_STORAGE_PATH
    path = os.path.normpath(os.path.join(root, key))
    if not path.startswith(os.path.normpath(root) + os.sep):
        raise ValueError(f"Invalid storage key: {key}")
    return path


def store(key: str, content_type: str, content: bytes) -> ObjectURL:
    """Write content under key and return a URL for it."""
    if settings.STORAGE_BACKEND == "s3":
        s3 = get_s3_client()
        s3.put_object(
            Bucket=settings.S3_BUCKET,
            Key=key,
            Body=content,
            ContentType=content_type,
        )
    else:
        path = _local_path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(content)
    return get_url(key)


def get_url(key: str) -> ObjectURL:
    """
    URL for key.

    Presigned S3 URLs live URL_LIFESPAN and are reported as expiring one
    minute early, so callers refresh before the link actually dies.
    """
    if settings.STORAGE_BACKEND == "s3":
        s3 = get_s3_client()
        url = s3.generate_presigned_url(
            "get_object",
            Params={"Bucket": settings.S3_BUCKET, "Key": key},
            ExpiresIn=int(URL_LIFESPAN.total_seconds()),
        )
        return ObjectURL(url=url, expiration=utcnow() + URL_LIFESPAN - timedelta(minutes=1))
    return ObjectURL(url=f"/upload/local/{key}", expiration=NEVER_EXPIRES)


def remove(key: str) -> None:
    if settings.STORAGE_BACKEND == "s3":
        s3 = get_s3_client()
        s3.delete_object(Bucket=settings.S3_BUCKET, Key=key)
        return
    path = _local_path(key)
    if os.path.exists(path):
        os.remove(path)


def read_local(key: str) -> bytes:
    """Content of a locally stored object (dev only)."""
    with open(_local_path(key), "rb") as f:
        return f.read()
