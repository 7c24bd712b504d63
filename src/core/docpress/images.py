"""Image helpers: extension lookup and best-effort recompression with Pillow."""

from __future__ import annotations

import io
from dataclasses import dataclass

from PIL import Image

from .config import ImageConfig
from .logging import get_logger

logger = get_logger(__name__)

TRANSPARENT_PIXEL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)

EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
    "image/bmp": ".bmp",
    "image/tiff": ".tiff",
}

_PILLOW_FORMATS: dict[str, str] = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}


def image_extension(content_type: str | None) -> str:
    """Return the file extension for *content_type*, ``.jpg`` when unknown."""

    return EXTENSIONS.get((content_type or "").lower(), ".jpg")


@dataclass(slots=True)
class OptimizedImage:
    buffer: bytes
    content_type: str


def optimize_image(buffer: bytes, content_type: str, config: ImageConfig) -> OptimizedImage:
    """Downscale and re-encode an image; on any failure the input is returned untouched."""

    try:
        return _optimize(buffer, content_type, config)
    except Exception as exc:
        logger.warning("Image optimization skipped: %s", exc, extra={"content_type": content_type})
        return OptimizedImage(buffer=buffer, content_type=content_type)


def _optimize(buffer: bytes, content_type: str, config: ImageConfig) -> OptimizedImage:
    with Image.open(io.BytesIO(buffer)) as image:
        image.load()
        if image.width > config.max_width or image.height > config.max_height:
            image.thumbnail((config.max_width, config.max_height))

        target_format = _PILLOW_FORMATS.get(content_type.lower())
        target_type = content_type
        if target_format is None:
            target_format = "JPEG"
            target_type = "image/jpeg"

        output = io.BytesIO()
        if target_format == "JPEG":
            if image.mode not in ("RGB", "L"):
                image = image.convert("RGB")
            image.save(output, format="JPEG", quality=config.quality, optimize=True, progressive=True)
        elif target_format == "PNG":
            image.save(output, format="PNG", optimize=True)
        else:
            image.save(output, format="WEBP", quality=config.quality)

    return OptimizedImage(buffer=output.getvalue(), content_type=target_type)


__all__ = [
    "EXTENSIONS",
    "OptimizedImage",
    "TRANSPARENT_PIXEL",
    "image_extension",
    "optimize_image",
]
