"""
Storage abstraction for uploaded images: local disk, Tencent COS
(S3-compatible) and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

import boto3
from botocore.config import Config


class StorageClient(Protocol):
    """Defines the operations the API needs from image storage."""

    def save_bytes(self, path: str, data: bytes, content_type: str) -> None:
        ...

    def delete(self, path: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    stored_objects: dict = None

    def __post_init__(self):
        if self.stored_objects is None:
            self.stored_objects = {}

    def save_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self.stored_objects[path] = data

    def delete(self, path: str) -> None:
        if path not in self.stored_objects:
            raise FileNotFoundError(path)
        del self.stored_objects[path]


@dataclass
class LocalStorageClient:
    """
    Stores files below base_dir, keyed by their relative path.
    """

    base_dir: str = "."

    def _resolve(self, path: str) -> Path:
        return Path(self.base_dir) / path

    def save_bytes(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def delete(self, path: str) -> None:
        self._resolve(path).unlink()


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    def save_bytes(self, path: str, data: bytes, content_type: str) -> None:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )

    def delete(self, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=path)
