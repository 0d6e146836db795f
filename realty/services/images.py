"""
Image optimizer.

Resizes an uploaded image to a named profile's box (never enlarging it) and
re-encodes it as JPEG or WebP. Pure function of (bytes, profile); safe to call
from worker threads concurrently.
"""
from __future__ import annotations

import io
from dataclasses import dataclass
from enum import Enum
from typing import Literal

from PIL import Image, ImageOps, UnidentifiedImageError

from realty.core.errors import ImageProcessingError


class ProfileName(str, Enum):
    THUMBNAIL = "thumbnail"
    STANDARD = "standard"
    HIGH_QUALITY = "highQuality"
    WEBP = "webp"


@dataclass(frozen=True)
class OptimizationProfile:
    name: ProfileName
    quality: int
    width: int
    height: int
    fit: Literal["cover", "inside"]
    format: Literal["jpeg", "webp"]

    @property
    def content_type(self) -> str:
        return f"image/{self.format}"


PROFILES: dict[ProfileName, OptimizationProfile] = {
    ProfileName.THUMBNAIL: OptimizationProfile(ProfileName.THUMBNAIL, quality=70, width=400, height=400, fit="cover", format="jpeg"),
    ProfileName.STANDARD: OptimizationProfile(ProfileName.STANDARD, quality=80, width=1200, height=800, fit="inside", format="jpeg"),
    ProfileName.HIGH_QUALITY: OptimizationProfile(ProfileName.HIGH_QUALITY, quality=90, width=1920, height=1080, fit="inside", format="jpeg"),
    ProfileName.WEBP: OptimizationProfile(ProfileName.WEBP, quality=80, width=1200, height=800, fit="inside", format="webp"),
}

DEFAULT_PROFILE = ProfileName.STANDARD


def get_profile(name: str | None) -> OptimizationProfile:
    """Total lookup: unknown or missing names fall back to the standard profile."""
    try:
        return PROFILES[ProfileName(name)]
    except ValueError:
        return PROFILES[DEFAULT_PROFILE]


@dataclass(frozen=True)
class OptimizedImage:
    data: bytes
    width: int
    height: int
    profile: OptimizationProfile

    @property
    def size(self) -> int:
        return len(self.data)


def _scaled(w: int, h: int, scale: float) -> tuple[int, int]:
    return max(1, round(w * scale)), max(1, round(h * scale))


def _resize_inside(img: Image.Image, box_w: int, box_h: int) -> Image.Image:
    w, h = img.size
    scale = min(1.0, box_w / w, box_h / h)
    if scale >= 1.0:
        return img
    return img.resize(_scaled(w, h, scale), Image.Resampling.LANCZOS)


def _resize_cover(img: Image.Image, box_w: int, box_h: int) -> Image.Image:
    # fill the box then centre-crop; images smaller than the box are only cropped
    w, h = img.size
    scale = min(1.0, max(box_w / w, box_h / h))
    if scale < 1.0:
        img = img.resize(_scaled(w, h, scale), Image.Resampling.LANCZOS)
        w, h = img.size

    crop_w, crop_h = min(w, box_w), min(h, box_h)
    if (crop_w, crop_h) == (w, h):
        return img
    left = (w - crop_w) // 2
    top = (h - crop_h) // 2
    return img.crop((left, top, left + crop_w, top + crop_h))


def _flatten_for_jpeg(img: Image.Image) -> Image.Image:
    if img.mode in ("RGBA", "LA", "P"):
        rgba = img.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[-1])
        return background
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def optimize(buffer: bytes, profile: OptimizationProfile) -> OptimizedImage:
    try:
        with Image.open(io.BytesIO(buffer)) as src:
            src.load()
            img = ImageOps.exif_transpose(src)

        if profile.fit == "cover":
            img = _resize_cover(img, profile.width, profile.height)
        else:
            img = _resize_inside(img, profile.width, profile.height)

        out = io.BytesIO()
        if profile.format == "webp":
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            img.save(out, format="WEBP", quality=profile.quality, method=6)
        else:
            img = _flatten_for_jpeg(img)
            # optimize + progressive is the closest Pillow gets to mozjpeg output
            img.save(out, format="JPEG", quality=profile.quality, optimize=True, progressive=True)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Image processing failed: {e}") from e

    return OptimizedImage(data=out.getvalue(), width=img.width, height=img.height, profile=profile)
