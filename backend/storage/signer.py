"""Upload URL signing: time-limited write URLs for original media.

Only the location string ever reaches the transcript; the audio bytes go
straight from the client to the bucket.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Optional
from urllib.parse import quote

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage

from config.settings import Settings
from core.exceptions import UpstreamServiceError

logger = logging.getLogger(__name__)


def original_media_path(user_id: str, transcript_id: str) -> str:
    return f"media/{user_id}/{transcript_id}-original"


class UploadUrlSigner(ABC):
    """Abstract signed-URL issuer."""

    @abstractmethod
    async def signed_upload_url(self, path: str, content_type: str) -> str:
        """Return a URL that accepts a PUT of content_type to path."""
        ...


class GCSUploadUrlSigner(UploadUrlSigner):
    """V4 signed PUT URLs on a Google Cloud Storage bucket."""

    def __init__(self, bucket_name: str, expiry_seconds: int, client: Optional[storage.Client] = None):
        self._bucket_name = bucket_name
        self._expiry = timedelta(seconds=expiry_seconds)
        self._client = client

    def _bucket(self) -> storage.Bucket:
        if self._client is None:
            self._client = storage.Client()
        return self._client.bucket(self._bucket_name)

    def _sign(self, path: str, content_type: str) -> str:
        blob = self._bucket().blob(path)
        return blob.generate_signed_url(
            version="v4",
            method="PUT",
            content_type=content_type,
            expiration=self._expiry,
        )

    async def signed_upload_url(self, path: str, content_type: str) -> str:
        try:
            url = await asyncio.to_thread(self._sign, path, content_type)
        except (GoogleAPIError, GoogleAuthError) as e:
            raise UpstreamServiceError(f"Failed to sign upload URL for {path}: {e}") from e
        logger.info("Upload URL issued: bucket=%s path=%s", self._bucket_name, path)
        return url


class MockUploadUrlSigner(UploadUrlSigner):
    """Deterministic URLs for development and testing."""

    def __init__(self, bucket_name: str = "mock-bucket"):
        self._bucket_name = bucket_name or "mock-bucket"

    async def signed_upload_url(self, path: str, content_type: str) -> str:
        return (
            f"https://storage.invalid/{self._bucket_name}/{quote(path)}"
            f"?contentType={quote(content_type, safe='')}"
        )


def build_upload_signer(settings: Settings) -> UploadUrlSigner:
    if settings.MOCK_STORAGE:
        logger.info("[STORAGE] Signer=MockUploadUrlSigner (MOCK_STORAGE=true)")
        return MockUploadUrlSigner(settings.GCS_BUCKET)
    logger.info("[STORAGE] Signer=GCSUploadUrlSigner bucket=%s", settings.GCS_BUCKET)
    return GCSUploadUrlSigner(settings.GCS_BUCKET, settings.UPLOAD_URL_EXPIRY_SECONDS)
