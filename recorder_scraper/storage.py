"""
Artifact storage: the sink adapter and the blob stores it writes to.

Supports S3 (or any S3-compatible endpoint) and the local filesystem.
"""

import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import Settings
from .errors import ConfigError, UploadError
from .models import DownloadArtifact

logger = logging.getLogger("recorder_scraper")

CONTENT_TYPE = "application/pdf"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def safe_filename(name: str) -> str:
    cleaned = _UNSAFE_CHARS.sub("_", os.path.basename(name or "")).strip("._")
    return cleaned or "document.pdf"


def build_key(namespace: str, filename: str, now: datetime) -> str:
    """
    Build a collision-free storage key

    Args:
        namespace: Fixed prefix for the site
        filename: Suggested file name of the artifact
        now: Upload time, used for the date partition and timestamp

    Returns:
        Key of the form ``<namespace>/<YYYY-MM-DD>/<ms timestamp>-<token>-<filename>``.
        The 8-hex random token sits between the timestamp and the file name
        so two uploads in the same millisecond never share a key; drop it and
        the layout is the plain ``<ms timestamp>-<filename>`` form.
    """
    timestamp = int(now.timestamp() * 1000)
    token = uuid.uuid4().hex[:8]
    return f"{namespace}/{now.strftime('%Y-%m-%d')}/{timestamp}-{token}-{safe_filename(filename)}"


class ArtifactStore(ABC):
    """Durable blob store accepting bytes and a key hint, returning a locator"""

    @abstractmethod
    def upload(self, content: bytes, key_hint: str) -> str:
        ...


class S3ArtifactStore(ArtifactStore):
    def __init__(
        self,
        bucket: str,
        namespace: str,
        client: Any = None,
        region: str = "us-east-1",
        endpoint_url: Optional[str] = None,
        now: Callable[[], datetime] = _utcnow,
    ):
        if not bucket:
            raise ConfigError("S3 bucket name is required")
        self.bucket = bucket
        self.namespace = namespace
        self.now = now
        self.client = client or boto3.client("s3", region_name=region, endpoint_url=endpoint_url)

    def upload(self, content: bytes, key_hint: str) -> str:
        now = self.now()
        key = build_key(self.namespace, key_hint, now)
        logger.info(f"Uploading to S3: {key}")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=CONTENT_TYPE,
                Metadata={
                    "source": self.namespace,
                    "timestamp": now.isoformat(),
                },
            )
        except (BotoCoreError, ClientError) as e:
            logger.error(f"S3 upload error: {e}")
            raise UploadError(f"Failed to upload to S3: {e}")
        logger.info(f"Successfully uploaded to S3: {key}")
        return f"s3://{self.bucket}/{key}"


class LocalArtifactStore(ArtifactStore):
    """Writes artifacts below a local directory, for development runs"""

    def __init__(self, root: str, namespace: str, now: Callable[[], datetime] = _utcnow):
        self.root = Path(root)
        self.namespace = namespace
        self.now = now

    def upload(self, content: bytes, key_hint: str) -> str:
        key = build_key(self.namespace, key_hint, self.now())
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise UploadError(f"Failed to write {path}: {e}")
        logger.info(f"Artifact stored locally: {path}")
        return path.resolve().as_uri()


def store_from_settings(settings: Settings, namespace: str) -> ArtifactStore:
    if settings.local_store:
        return LocalArtifactStore(settings.local_store, namespace)
    if not settings.s3_bucket:
        raise ConfigError("Set S3_BUCKET_NAME or RECORDER_LOCAL_STORE to choose where documents go")
    return S3ArtifactStore(
        settings.s3_bucket,
        namespace,
        region=settings.aws_region,
        endpoint_url=settings.s3_endpoint_url,
    )


class ArtifactSink:
    """Hands a finished download to the durable store; sole owner of the bytes until then"""

    def __init__(self, store: ArtifactStore):
        self.store = store

    def deliver(self, artifact: DownloadArtifact) -> str:
        """
        Upload the artifact

        Returns:
            Locator of the stored document

        Raises:
            UploadError: If the artifact is empty or the store failed the write
        """
        if not artifact.content:
            raise UploadError("refusing to upload an empty artifact")
        try:
            locator = self.store.upload(artifact.content, artifact.suggested_name)
        except UploadError:
            raise
        except Exception as e:
            raise UploadError(f"upload failed: {e}")
        if not locator:
            raise UploadError("store returned no locator")
        logger.info(f"File uploaded successfully to: {locator}")
        return locator
