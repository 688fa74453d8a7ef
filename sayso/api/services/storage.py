"""
Storage abstraction for claim documents: S3-compatible buckets and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object storage call fails."""


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def remove(self, paths: Iterable[str]) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    bucket: str = "business-verification"
    stored_objects: Dict[str, bytes] = field(default_factory=dict)
    content_types: Dict[str, str] = field(default_factory=dict)

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.stored_objects[path] = bytes(data)
        self.content_types[path] = content_type

    def remove(self, paths: Iterable[str]) -> None:
        for path in paths:
            self.stored_objects.pop(path, None)
            self.content_types.pop(path, None)


@dataclass
class S3StorageClient:
    """S3-compatible storage client (AWS S3, Supabase storage S3 gateway, MinIO)."""

    bucket: str
    region: str
    endpoint: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None

    def __post_init__(self):
        config = Config(signature_version="s3v4", retries={"max_attempts": 2})
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def upload_bytes(self, path: str, data: bytes, content_type: str) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket, Key=path, Body=data, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e

    def remove(self, paths: Iterable[str]) -> None:
        keys = [{"Key": path} for path in paths]
        if not keys:
            return
        failed = []
        try:
            # delete_objects accepts at most 1000 keys per call
            for start in range(0, len(keys), 1000):
                response = self._client.delete_objects(
                    Bucket=self.bucket,
                    Delete={"Objects": keys[start:start + 1000], "Quiet": True},
                )
                # Quiet mode still reports per-key failures
                failed.extend(response.get("Errors") or [])
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Delete failed: {e}") from e

        if failed:
            first = failed[0]
            raise StorageError(
                f"Delete failed for {len(failed)} object(s), "
                f"e.g. {first.get('Key')}: {first.get('Code')} {first.get('Message', '')}".rstrip()
            )


def remove_quietly(storage: StorageClient, paths: Iterable[str]) -> bool:
    """Remove objects, logging instead of raising. Returns True on success."""
    paths = list(paths)
    if not paths:
        return True
    try:
        storage.remove(paths)
        return True
    except StorageError as e:
        logger.error(f"Failed to remove {len(paths)} storage object(s): {e}")
        return False
