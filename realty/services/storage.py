from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Protocol
from urllib.parse import quote

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from realty.core.config import Settings
from realty.core.errors import NotFoundError, UpstreamError
from realty.core.fanout import Err, Ok, settle_all

log = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9._-]")
DEFAULT_EXTENSION = ".jpg"


class StoreTransportError(Exception):
    """Raised by a backend when the storage provider could not be reached or refused the call."""


class ObjectStore(Protocol):
    """
    Byte storage backend. Implementations are synchronous and safe to call
    from several worker threads at once.
    """

    def put_bytes(self, *, key: str, data: bytes, content_type: str, metadata: dict[str, str]) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...

    def delete(self, key: str) -> None:
        ...

    def url_for(self, key: str) -> str:
        ...


class LocalObjectStore:
    """Directory-backed store for development and tests; metadata lives in a sidecar JSON file."""

    META_SUFFIX = ".meta.json"

    def __init__(self, base_dir: str | Path, public_base_url: str = "file://"):
        self.base = Path(base_dir)
        self.base.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    def _path(self, key: str) -> Path:
        root = self.base.resolve()
        path = (root / key).resolve()
        # the key must be exactly the path it resolves to
        if root not in path.parents or path.relative_to(root).as_posix() != key:
            raise StoreTransportError(f"Key does not resolve to itself under storage root: {key}")
        return path

    def put_bytes(self, *, key: str, data: bytes, content_type: str, metadata: dict[str, str]) -> None:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
            meta = {"content_type": content_type, "metadata": metadata}
            path.with_name(path.name + self.META_SUFFIX).write_text(json.dumps(meta), encoding="utf-8")
        except OSError as e:
            raise StoreTransportError(str(e)) from e

    def read_bytes(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def read_metadata(self, key: str) -> dict[str, Any]:
        path = self._path(key)
        return json.loads(path.with_name(path.name + self.META_SUFFIX).read_text(encoding="utf-8"))

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
            path.with_name(path.name + self.META_SUFFIX).unlink(missing_ok=True)
        except OSError as e:
            raise StoreTransportError(str(e)) from e

    def url_for(self, key: str) -> str:
        if self.public_base_url == "file:":
            return (self.base / key).resolve().as_uri()
        return f"{self.public_base_url}/{key}"


class S3ObjectStore:
    """S3 (or S3-compatible) bucket. One boto3 client, shared across requests."""

    def __init__(
        self,
        *,
        bucket: str,
        region: str,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        endpoint_url: str | None = None,
        client: Any | None = None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            endpoint_url=endpoint_url,
            config=Config(retries={"max_attempts": 1, "mode": "standard"}),
        )

    def put_bytes(self, *, key: str, data: bytes, content_type: str, metadata: dict[str, str]) -> None:
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata,
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreTransportError(str(e)) from e

    def exists(self, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StoreTransportError(str(e)) from e
        except BotoCoreError as e:
            raise StoreTransportError(str(e)) from e
        return True

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise StoreTransportError(str(e)) from e

    def url_for(self, key: str) -> str:
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def build_object_store(settings: Settings) -> ObjectStore:
    if settings.storage_backend == "local":
        return LocalObjectStore(settings.local_storage_dir, settings.local_public_base_url)
    if settings.storage_backend == "s3":
        return S3ObjectStore(
            bucket=settings.aws_bucket_name,
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id,
            secret_access_key=(
                settings.aws_secret_access_key.get_secret_value() if settings.aws_secret_access_key else None
            ),
            endpoint_url=settings.aws_endpoint_url,
        )
    raise ValueError(f"Unsupported storage backend: {settings.storage_backend}")


@dataclass(frozen=True)
class RawFile:
    """An uploaded file as received. Lives for one request only."""
    filename: str
    content_type: str
    data: bytes
    size: int = -1
    owner_id: str | None = None

    def __post_init__(self):
        if self.size < 0:
            object.__setattr__(self, "size", len(self.data))


@dataclass(frozen=True)
class StoredObject:
    key: str
    url: str
    content_type: str
    size: int
    stored_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


def sanitize_filename(filename: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", filename or "")


def build_storage_key(owner_id: str, filename: str, *, now_ms: int | None = None) -> str:
    """uploads/{owner_id}/{unix_millis}_{sanitized_base}{ext}"""
    # "photo." has no extension; it takes the default like "photo" does
    safe = PurePosixPath(sanitize_filename(filename).rstrip("."))
    ext = safe.suffix.lower() or DEFAULT_EXTENSION
    base = safe.stem if safe.suffix else safe.name
    ts = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"uploads/{owner_id}/{ts}_{base}{ext}"


def owner_prefix(owner_id: str) -> str:
    return f"uploads/{owner_id}/"


class ObjectStoreGateway:
    """
    Storage boundary for listing media. Stores bytes exactly as given under
    owner-scoped keys; all transformation happens before this point.
    """

    def __init__(self, store: ObjectStore):
        self.store = store

    async def put(self, owner_id: str, file: RawFile) -> StoredObject:
        key = build_storage_key(owner_id, file.filename)
        metadata = {
            "originalname": quote(file.filename, safe=""),
            "uploadedby": str(owner_id),
            "processed": "true",
        }
        try:
            await asyncio.to_thread(
                self.store.put_bytes,
                key=key,
                data=file.data,
                content_type=file.content_type,
                metadata=metadata,
            )
        except StoreTransportError as e:
            log.warning("put failed key=%s: %s", key, e)
            raise UpstreamError(f"Failed to upload {file.filename}: {e}", context={"key": key, "filename": file.filename}) from e

        return StoredObject(key=key, url=self.store.url_for(key), content_type=file.content_type, size=len(file.data))

    async def put_many(self, owner_id: str, files: list[RawFile]) -> list[Ok[StoredObject] | Err]:
        return await settle_all(files, lambda f: self.put(owner_id, f))

    async def delete(self, key: str) -> None:
        try:
            found = await asyncio.to_thread(self.store.exists, key)
            if not found:
                raise NotFoundError("File not found", context={"key": key})
            await asyncio.to_thread(self.store.delete, key)
        except StoreTransportError as e:
            log.warning("delete failed key=%s: %s", key, e)
            raise UpstreamError(f"Failed to delete {key}: {e}", context={"key": key}) from e
