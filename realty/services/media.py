from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

from realty.core.errors import AppError, ForbiddenError, ValidationError, aggregate_error
from realty.core.fanout import Err, Ok, settle_all
from realty.services.images import OptimizationProfile, OptimizedImage, get_profile, optimize
from realty.services.storage import ObjectStoreGateway, RawFile, StoredObject, owner_prefix

log = logging.getLogger(__name__)

BatchStatus = Literal["success", "partial"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadedImage:
    """What the client gets back for one stored image and later references from a listing."""
    key: str
    url: str
    original_size: int
    optimized_size: int
    format: str
    target_width: int
    target_height: int
    width: int
    height: int
    last_modified: datetime

    @property
    def reduction(self) -> int:
        if self.original_size <= 0:
            return 0
        return round((1 - self.optimized_size / self.original_size) * 100)

    @classmethod
    def build(cls, original: RawFile, optimized: OptimizedImage, stored: StoredObject) -> "UploadedImage":
        return cls(
            key=stored.key,
            url=stored.url,
            original_size=original.size,
            optimized_size=optimized.size,
            format=optimized.profile.format,
            target_width=optimized.profile.width,
            target_height=optimized.profile.height,
            width=optimized.width,
            height=optimized.height,
            last_modified=_now(),
        )


@dataclass(frozen=True)
class ItemFailure:
    item: str  # filename or storage key
    error: AppError

    @property
    def message(self) -> str:
        return self.error.message


@dataclass
class UploadBatchResult:
    successful: list[UploadedImage] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)

    @property
    def status(self) -> BatchStatus:
        return "partial" if self.failed else "success"


@dataclass
class RemovalBatchResult:
    deleted: list[str] = field(default_factory=list)
    failed: list[ItemFailure] = field(default_factory=list)
    deleted_at: datetime = field(default_factory=_now)

    @property
    def status(self) -> BatchStatus:
        return "partial" if self.failed else "success"


@dataclass(frozen=True)
class _Optimized:
    original: RawFile
    image: OptimizedImage

    def as_stored_file(self) -> RawFile:
        return RawFile(
            filename=self.original.filename,
            content_type=self.image.profile.content_type,
            data=self.image.data,
            owner_id=self.original.owner_id,
        )


def ensure_key_owned(key: Any, owner_id: str) -> str:
    if not isinstance(key, str) or not key.strip():
        raise ValidationError("Image key is required")
    if "\\" in key or any(part in ("", ".", "..") for part in key.split("/")):
        raise ValidationError("Invalid image key", context={"key": key})
    if not key.startswith(owner_prefix(owner_id)):
        raise ForbiddenError("Unauthorized to access this resource", context={"key": key})
    return key


class MediaIngestionService:
    """
    Optimize-then-store pipeline for listing photos, plus owner-scoped removal.

    Batch calls settle every item; one bad file or key never aborts the others.
    """

    def __init__(
        self,
        gateway: ObjectStoreGateway,
        *,
        allowed_types: tuple[str, ...] = ("image/jpeg", "image/jpg", "image/png", "image/webp"),
        max_file_bytes: int = 10 * 1024 * 1024,
        max_batch_files: int = 5,
    ):
        self.gateway = gateway
        self.allowed_types = allowed_types
        self.max_file_bytes = max_file_bytes
        self.max_batch_files = max_batch_files

    def _admit(self, file: RawFile) -> None:
        if file.content_type not in self.allowed_types:
            raise ValidationError(
                f"Invalid file type for {file.filename}. Only {', '.join(self.allowed_types)} allowed",
                context={"filename": file.filename, "content_type": file.content_type},
            )
        if file.size > self.max_file_bytes:
            raise ValidationError(
                f"File too large: {file.filename} ({file.size} bytes, max {self.max_file_bytes})",
                context={"filename": file.filename, "size": file.size},
            )

    async def _optimize(self, file: RawFile, profile: OptimizationProfile) -> _Optimized:
        # encoding is CPU-bound; keep it off the event loop
        image = await asyncio.to_thread(optimize, file.data, profile)
        return _Optimized(original=file, image=image)

    async def upload_image(self, owner_id: str, file: RawFile | None, profile_name: str | None = None) -> UploadedImage:
        if file is None:
            raise ValidationError('No file uploaded. Use field name "image"')
        self._admit(file)

        profile = get_profile(profile_name)
        optimized = await self._optimize(file, profile)
        stored = await self.gateway.put(owner_id, optimized.as_stored_file())

        log.info("stored image key=%s owner=%s profile=%s", stored.key, owner_id, profile.name.value)
        return UploadedImage.build(file, optimized.image, stored)

    async def upload_images(self, owner_id: str, files: list[RawFile] | None, profile_name: str | None = None) -> UploadBatchResult:
        if not files:
            raise ValidationError('No files uploaded. Use field name "images"')
        if len(files) > self.max_batch_files:
            raise ValidationError(f"Too many files. At most {self.max_batch_files} images per upload")
        for f in files:
            self._admit(f)

        profile = get_profile(profile_name)
        result = UploadBatchResult()

        optimized: list[_Optimized] = []
        for file, outcome in zip(files, await settle_all(files, lambda f: self._optimize(f, profile))):
            if isinstance(outcome, Ok):
                optimized.append(outcome.value)
            else:
                log.warning("failed to process %s: %s", file.filename, outcome.error.message)
                result.failed.append(ItemFailure(item=file.filename, error=outcome.error))

        if not optimized:
            raise aggregate_error(
                "All files failed processing",
                [f.error for f in result.failed],
                context={"failed": [{"filename": f.item, "error": f.message} for f in result.failed]},
            )

        stored = await self.gateway.put_many(owner_id, [o.as_stored_file() for o in optimized])
        for item, outcome in zip(optimized, stored):
            if isinstance(outcome, Ok):
                result.successful.append(UploadedImage.build(item.original, item.image, outcome.value))
            else:
                result.failed.append(ItemFailure(item=item.original.filename, error=outcome.error))

        if not result.successful:
            raise aggregate_error(
                "All files failed to upload",
                [f.error for f in result.failed],
                context={"failed": [{"filename": f.item, "error": f.message} for f in result.failed]},
            )

        log.info(
            "batch upload owner=%s stored=%d failed=%d",
            owner_id, len(result.successful), len(result.failed),
        )
        return result

    async def remove_image(self, owner_id: str, key: Any) -> datetime:
        ensure_key_owned(key, owner_id)
        await self.gateway.delete(key)
        log.info("deleted image key=%s owner=%s", key, owner_id)
        return _now()

    async def remove_images(self, owner_id: str, keys: Any) -> RemovalBatchResult:
        if keys is None:
            raise ValidationError("Image keys array is required in request body")
        if not isinstance(keys, list):
            raise ValidationError("Keys must be provided as an array")
        if not keys:
            raise ValidationError("At least one image key is required")

        # every key is checked before any delete is issued
        for key in keys:
            ensure_key_owned(key, owner_id)

        result = RemovalBatchResult()
        for key, outcome in zip(keys, await settle_all(keys, self.gateway.delete)):
            if isinstance(outcome, Err):
                log.warning("failed to delete %s: %s", key, outcome.error.message)
                result.failed.append(ItemFailure(item=outcome.error.context.get("key", key), error=outcome.error))
            else:
                result.deleted.append(key)

        if not result.deleted:
            raise aggregate_error(
                "Failed to delete all images",
                [f.error for f in result.failed],
                context={"failed": [{"key": f.item, "error": f.message} for f in result.failed]},
            )
        return result
