from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote, urlencode

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from handoff.core.config import settings
from handoff.core.errors import NotFound, TransientIOFailure
from handoff.core.logging_setup import logger
from handoff.utils.security import sign_storage_path, verify_storage_signature


def resolve_storage_root() -> Path:
    """
    Root directory for locally stored project files.
    """
    raw = os.getenv("HANDOFF_STORAGE") or settings.handoff_storage or "_storage"
    return Path(raw).expanduser().resolve()


class StorageBackend(Protocol):
    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:  # returns storage path
        ...

    def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        ...

    def load_bytes(self, path: str) -> bytes:
        ...


@dataclass
class LocalStorage:
    base_dir: Path
    public_base_url: str = ""

    def __post_init__(self) -> None:
        self.base_dir = Path(self.base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _target(self, path: str) -> Path:
        target = (self.base_dir / path).resolve()
        if self.base_dir not in target.parents:
            raise NotFound("File not found")
        return target

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:  # noqa: ARG002
        target = self._target(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            logger.error("Local upload failed for %s: %s", path, exc)
            raise TransientIOFailure("Storage unavailable") from exc
        return path

    def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        query = urlencode({"expires": expires, "signature": sign_storage_path(path, expires)})
        return f"{self.public_base_url.rstrip('/')}/storage/{quote(path)}?{query}"

    def verify(self, path: str, expires: int, signature: str) -> bool:
        if expires < int(time.time()):
            return False
        return verify_storage_signature(path, expires, signature)

    def load_bytes(self, path: str) -> bytes:
        target = self._target(path)
        if not target.exists():
            raise NotFound("File not found")
        try:
            return target.read_bytes()
        except OSError as exc:
            raise TransientIOFailure("Storage unavailable") from exc


@dataclass
class S3Storage:
    bucket: str
    client: Any

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        extra = {"ContentType": content_type} if content_type else {}
        try:
            self.client.put_object(Bucket=self.bucket, Key=path, Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed for %s: %s", path, exc)
            raise TransientIOFailure("Storage unavailable") from exc
        return path

    def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": path},
                ExpiresIn=ttl_seconds,
            )
        except (BotoCoreError, ClientError) as exc:
            raise TransientIOFailure("Storage unavailable") from exc

    def load_bytes(self, path: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=path)
        except (BotoCoreError, ClientError) as exc:
            raise TransientIOFailure("Storage unavailable") from exc
        body = response.get("Body")
        return body.read() if body else b""


def get_storage() -> StorageBackend:
    # Explicit local storage path wins (tests and local development)
    if os.getenv("HANDOFF_STORAGE"):
        return LocalStorage(base_dir=resolve_storage_root(), public_base_url=settings.public_base_url)

    if settings.s3_endpoint_url and settings.s3_access_key and settings.s3_secret_key and settings.s3_bucket_files:
        client = boto3.client(
            "s3",
            endpoint_url=settings.s3_endpoint_url,
            aws_access_key_id=settings.s3_access_key,
            aws_secret_access_key=settings.s3_secret_key,
            config=BotoConfig(signature_version="s3v4"),
            region_name=os.getenv("AWS_REGION", "us-east-1"),
        )
        return S3Storage(bucket=settings.s3_bucket_files, client=client)

    return LocalStorage(base_dir=resolve_storage_root(), public_base_url=settings.public_base_url)
