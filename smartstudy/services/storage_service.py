"""
Storage Service - keeps uploaded note files in S3 (or S3-compatible storage)
and falls back to the local upload directory when no bucket is configured.
"""
import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import quote

import aiofiles
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from smartstudy.core.config import Settings
from smartstudy.core.exceptions import StorageError

logger = logging.getLogger("smartstudy.storage")

PROVIDER_S3 = "s3"
PROVIDER_LOCAL = "local"


@dataclass
class StoredFile:
    """What the storage provider hands back after an upload."""

    file_name: str
    original_file_name: str
    file_path: str
    file_size: int
    file_type: str
    mime_type: str
    storage_provider: str
    storage_key: str
    storage_url: Optional[str] = None

    def as_note_fields(self) -> dict:
        return {
            "file_name": self.file_name,
            "original_file_name": self.original_file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "file_type": self.file_type,
            "mime_type": self.mime_type,
            "storage_provider": self.storage_provider,
            "storage_key": self.storage_key,
            "storage_url": self.storage_url,
        }


def unique_file_name(original_name: str, extension: str) -> str:
    """Slugged original stem plus a timestamp and random suffix."""
    stem = Path(original_name).stem
    slug = re.sub(r"[^a-zA-Z0-9]", "-", stem)
    slug = re.sub(r"-+", "-", slug).strip("-") or "file"
    suffix = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
    return f"{slug}-{suffix}.{extension}" if extension else f"{slug}-{suffix}"


def attachment_disposition(file_name: str) -> str:
    """``Content-Disposition`` value that survives latin-1 header encoding.

    Names outside printable ASCII, or carrying quotes or backslashes, get an
    ASCII ``filename`` fallback plus the exact name as ``filename*`` (RFC 5987).
    """
    fallback = "".join(ch for ch in file_name if " " <= ch <= "~" and ch not in '"\\').strip()
    if fallback == file_name:
        return f'attachment; filename="{file_name}"'
    extension = Path(file_name).suffix
    if not fallback or fallback == extension:
        fallback = f"download{extension if extension.isascii() else ''}"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


class StorageService:
    """Upload, delete and resolve download targets for note files."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = None
        self.provider = PROVIDER_S3 if settings.use_s3 else PROVIDER_LOCAL
        self.upload_dir = Path(settings.UPLOAD_DIR) / "notes"
        logger.info("StorageService using %s provider", self.provider)

    def _get_client(self):
        """Lazy initialization of the S3 client"""
        if self._client is None:
            kwargs = {
                "region_name": self.settings.AWS_REGION,
                "config": Config(signature_version="s3v4"),
            }
            if self.settings.S3_ENDPOINT_URL:
                kwargs["endpoint_url"] = self.settings.S3_ENDPOINT_URL
            # Without explicit keys boto3 falls back to its own credential chain (IAM role, env)
            if self.settings.AWS_ACCESS_KEY_ID and self.settings.AWS_SECRET_ACCESS_KEY:
                kwargs["aws_access_key_id"] = self.settings.AWS_ACCESS_KEY_ID
                kwargs["aws_secret_access_key"] = self.settings.AWS_SECRET_ACCESS_KEY
            self._client = boto3.client("s3", **kwargs)
        return self._client

    async def save(self, original_name: str, content: bytes, mime_type: str, extension: str) -> StoredFile:
        """Persist ``content`` and return its metadata."""
        file_name = unique_file_name(original_name, extension)
        if self.provider == PROVIDER_S3:
            return await self._save_s3(file_name, original_name, content, mime_type, extension)
        return await self._save_local(file_name, original_name, content, mime_type, extension)

    async def _save_s3(self, file_name, original_name, content, mime_type, extension) -> StoredFile:
        key = f"{self.settings.S3_PREFIX.strip('/')}/{file_name}" if self.settings.S3_PREFIX else file_name
        try:
            await run_in_threadpool(
                self._get_client().put_object,
                Bucket=self.settings.S3_BUCKET,
                Key=key,
                Body=content,
                ContentType=mime_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("[S3-Upload] Failed to upload %s: %s", key, e)
            raise StorageError("File upload failed")

        url = f"s3://{self.settings.S3_BUCKET}/{key}"
        logger.info("[S3-Upload] Uploaded %s (%d bytes)", key, len(content))
        return StoredFile(
            file_name=file_name,
            original_file_name=original_name,
            file_path=url,
            file_size=len(content),
            file_type=extension,
            mime_type=mime_type,
            storage_provider=PROVIDER_S3,
            storage_key=key,
            storage_url=url,
        )

    async def _save_local(self, file_name, original_name, content, mime_type, extension) -> StoredFile:
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        file_path = (self.upload_dir / file_name).resolve()
        try:
            async with aiofiles.open(file_path, "wb") as buffer:
                await buffer.write(content)
        except OSError as e:
            logger.error("[Local-Upload] Failed to write %s: %s", file_path, e)
            raise StorageError("File upload failed")

        logger.info("[Local-Upload] Saved %s (%d bytes)", file_path, len(content))
        return StoredFile(
            file_name=file_name,
            original_file_name=original_name,
            file_path=str(file_path),
            file_size=len(content),
            file_type=extension,
            mime_type=mime_type,
            storage_provider=PROVIDER_LOCAL,
            storage_key=str(file_path),
        )

    async def delete(self, provider: Optional[str], key: Optional[str]) -> bool:
        """Best-effort delete. Failures are logged and reported as False, never raised."""
        if not key:
            return True
        try:
            if provider == PROVIDER_S3:
                await run_in_threadpool(
                    self._get_client().delete_object, Bucket=self.settings.S3_BUCKET, Key=key
                )
            else:
                Path(key).unlink(missing_ok=True)
        except (ClientError, BotoCoreError, OSError) as e:
            logger.warning("Could not delete stored file %s (%s): %s", key, provider, e)
            return False
        logger.info("Deleted stored file %s", key)
        return True

    def presigned_download_url(self, key: str, original_name: str) -> str:
        """URL that makes the browser save the file rather than render it."""
        try:
            return self._get_client().generate_presigned_url(
                "get_object",
                Params={
                    "Bucket": self.settings.S3_BUCKET,
                    "Key": key,
                    "ResponseContentDisposition": attachment_disposition(original_name),
                },
                ExpiresIn=self.settings.S3_PRESIGNED_URL_EXPIRE_SECONDS,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("Could not sign download URL for %s: %s", key, e)
            raise StorageError("Error downloading file")
