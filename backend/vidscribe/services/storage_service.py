"""
Supabase Storage adapter: upload a video into the public bucket and build its URL.
"""
from __future__ import annotations

from pathlib import Path
from urllib.parse import quote
import logging
import mimetypes
import uuid

import httpx

from ..errors import UploadError, ValidationError
from ..usage import ALLOWED_VIDEO_EXTENSIONS, DEFAULT_MAX_UPLOAD_SIZE_BYTES

logger = logging.getLogger(__name__)


class StorageService:
    """Object storage for uploaded videos."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        supabase_url: str,
        service_key: str,
        bucket: str = "videos",
        max_upload_size_bytes: int = DEFAULT_MAX_UPLOAD_SIZE_BYTES,
    ):
        self.http_client = http_client
        self.supabase_url = supabase_url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.max_upload_size_bytes = max_upload_size_bytes

    @staticmethod
    def validate_filename(filename: str) -> str:
        """Return the lowercase extension, rejecting unsupported formats."""
        extension = Path(filename or "").suffix.lower()
        if extension not in ALLOWED_VIDEO_EXTENSIONS:
            supported = ", ".join(sorted(ext.lstrip(".").upper() for ext in ALLOWED_VIDEO_EXTENSIONS))
            raise ValidationError(f"Unsupported video format. Supported formats: {supported}")
        return extension

    def check_size(self, size_bytes: int) -> None:
        if size_bytes > self.max_upload_size_bytes:
            limit_mb = self.max_upload_size_bytes // (1024 * 1024)
            raise UploadError(f"File size must be less than {limit_mb}MB", status_code=413)

    async def upload(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Store the blob under a random name and return its object path."""
        extension = self.validate_filename(filename)
        if not data:
            raise UploadError("Uploaded video file is empty", status_code=400)
        self.check_size(len(data))

        path = f"{uuid.uuid4()}{extension}"
        resolved_content_type = content_type or mimetypes.guess_type(filename)[0] or "application/octet-stream"
        try:
            response = await self.http_client.post(
                f"{self.supabase_url}/storage/v1/object/{self.bucket}/{quote(path)}",
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                    "Content-Type": resolved_content_type,
                    "x-upsert": "false",
                },
                content=data,
            )
        except httpx.HTTPError as exc:
            raise UploadError(f"Storage unreachable: {exc}") from exc

        if response.is_error:
            raise UploadError(
                f"Storage rejected upload (HTTP {response.status_code})",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        logger.info(f"Uploaded {filename} to {self.bucket}/{path} ({len(data)} bytes)")
        return path

    def get_public_url(self, path: str) -> str:
        return f"{self.supabase_url}/storage/v1/object/public/{self.bucket}/{quote(path)}"
