"""
Document storage in an S3-compatible bucket (AWS S3, Cloudflare R2, MinIO).

Objects are private; downloads are either streamed through the API, which keeps
tenant visibility checks in one place, or handed out as short-lived presigned
URLs.
"""
import logging
import os
import uuid
from typing import Iterator, Optional, Tuple

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from property_crm.core.config import settings

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "text/plain",
    "text/csv",
}

CHUNK_SIZE = 1024 * 1024


class StorageError(Exception):
    """The object store rejected or failed a request."""


class ObjectNotFound(StorageError):
    pass


def get_s3_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL or None,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        config=Config(signature_version="s3v4"),
        region_name=settings.S3_REGION,
    )


def _safe_name(filename: Optional[str]) -> str:
    name = os.path.basename(filename or "file")
    return "".join(c if c.isalnum() or c in "._-" else "_" for c in name)[:100] or "file"


def build_key(owner_id: int, filename: Optional[str]) -> str:
    return f"documents/{owner_id}/{uuid.uuid4().hex}_{_safe_name(filename)}"


def upload(key: str, content: bytes, content_type: str, metadata: Optional[dict] = None) -> None:
    params = {
        "Bucket": settings.S3_BUCKET,
        "Key": key,
        "Body": content,
        "ContentType": content_type,
    }
    if metadata:
        params["Metadata"] = metadata
    try:
        get_s3_client().put_object(**params)
    except (ClientError, BotoCoreError) as e:
        logger.exception("Failed to upload %s to bucket %s", key, settings.S3_BUCKET)
        raise StorageError(str(e)) from e


def open_stream(key: str) -> Tuple[Iterator[bytes], Optional[int]]:
    """Returns (chunk iterator, content length) for a stored object."""
    try:
        response = get_s3_client().get_object(Bucket=settings.S3_BUCKET, Key=key)
    except ClientError as e:
        if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
            raise ObjectNotFound(key) from e
        logger.exception("Failed to fetch %s from bucket %s", key, settings.S3_BUCKET)
        raise StorageError(str(e)) from e
    except BotoCoreError as e:
        logger.exception("Failed to fetch %s from bucket %s", key, settings.S3_BUCKET)
        raise StorageError(str(e)) from e
    return response["Body"].iter_chunks(CHUNK_SIZE), response.get("ContentLength")


def presigned_url(key: str, filename: str, expires_in: int) -> str:
    try:
        return get_s3_client().generate_presigned_url(
            "get_object",
            Params={
                "Bucket": settings.S3_BUCKET,
                "Key": key,
                "ResponseContentDisposition": f'attachment; filename="{_safe_name(filename)}"',
            },
            ExpiresIn=expires_in,
        )
    except (ClientError, BotoCoreError) as e:
        logger.exception("Failed to presign %s", key)
        raise StorageError(str(e)) from e


def delete(key: str) -> None:
    try:
        get_s3_client().delete_object(Bucket=settings.S3_BUCKET, Key=key)
    except (ClientError, BotoCoreError) as e:
        raise StorageError(str(e)) from e
