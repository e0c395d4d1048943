"""
S3-compatible image store (DigitalOcean Spaces) - Implements ImageStore protocol.

Objects are written public-read under ``<folder>/<name>-<timestamp>-<uuid><ext>``
and addressed through the CDN base URL.
"""

import asyncio
import logging
import mimetypes
import time
import uuid
from pathlib import PurePath

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.config.settings import Settings
from src.domain.exceptions import BadRequest, InternalError

logger = logging.getLogger(__name__)


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def build_key(folder: str, filename: str) -> str:
    """Unique object key keeping the original base name and extension."""
    path = PurePath(filename)
    basename = path.stem or "image"
    return _join_path(folder, f"{basename}-{int(time.time() * 1000)}-{uuid.uuid4()}{path.suffix}")


class SpacesImageStore:
    """Implements ImageStore protocol via boto3 ``put_object``."""

    def __init__(self, settings: Settings, client=None):
        self._bucket = settings.spaces_bucket
        self._cdn_url = settings.spaces_cdn_url.rstrip("/")
        self._client = client or boto3.session.Session().client(
            "s3",
            region_name=settings.spaces_region,
            endpoint_url=settings.spaces_endpoint,
            aws_access_key_id=settings.spaces_key,
            aws_secret_access_key=(
                settings.spaces_secret.get_secret_value() if settings.spaces_secret else None
            ),
        )

    def _put(self, data: bytes, key: str, content_type: str) -> None:
        self._client.put_object(
            Bucket=self._bucket,
            Key=key,
            Body=data,
            ACL="public-read",
            ContentType=content_type,
        )

    async def upload(self, data: bytes, filename: str, folder: str) -> str:
        content_type, _ = mimetypes.guess_type(filename)
        if not content_type or not content_type.startswith("image/"):
            raise BadRequest("Only image files are allowed!")

        key = build_key(folder, filename)
        try:
            await asyncio.to_thread(self._put, data, key, content_type)
        except (BotoCoreError, ClientError) as e:
            logger.error("Image upload failed for %s: %s", key, e)
            raise InternalError("Failed to upload profile picture!") from e

        return f"{self._cdn_url}/{key}"
