from __future__ import annotations

import io
import time
import uuid
import zipfile
from pathlib import Path

import mammoth

from ..detection import DocumentType
from ..images import TRANSPARENT_PIXEL, image_extension
from ..logging import get_logger
from ..models import ConversionResult, ImageArtifact
from ..rewriter import placeholder_for
from .base import ConversionError

logger = get_logger(__name__)

STYLE_MAP = "\n".join(
    [
        "p[style-name='Heading 1'] => h1:fresh",
        "p[style-name='Heading 2'] => h2:fresh",
        "p[style-name='Heading 3'] => h3:fresh",
        "p[style-name='Heading 4'] => h4:fresh",
        "p[style-name='Heading 5'] => h5:fresh",
        "p[style-name='Heading 6'] => h6:fresh",
        "p[style-name='Normal'] => p:fresh",
    ]
)

EMPTY_DOCUMENT_HTML = "<p></p>"


class DocxAdapter:
    """Convert ``.docx`` packages to HTML with mammoth, extracting embedded images."""

    document_type = DocumentType.DOCX

    def convert(self, payload: bytes, file_name: str, workdir: Path) -> ConversionResult:
        started = time.perf_counter()
        if not zipfile.is_zipfile(io.BytesIO(payload)):
            raise ConversionError("INVALID_DOCUMENT", f"{file_name} is not a valid .docx package")

        images: list[ImageArtifact] = []
        convert_image = mammoth.images.img_element(
            lambda image: self._extract_image(image, workdir, images)
        )
        try:
            result = mammoth.convert_to_html(
                io.BytesIO(payload),
                style_map=STYLE_MAP,
                convert_image=convert_image,
                include_embedded_style_map=True,
            )
        except Exception as exc:
            raise ConversionError("INVALID_DOCUMENT", f"Could not convert {file_name}: {exc}") from exc

        warnings = [f"{message.type}: {message.message}" for message in result.messages]
        html = result.value or EMPTY_DOCUMENT_HTML
        metadata = {
            "original_size": len(payload),
            "html_length": len(html),
            "images_count": len(images),
            "warnings": warnings,
            "conversion_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        return ConversionResult(html=html, images=images, metadata=metadata)

    def _extract_image(
        self, image: mammoth.documents.Image, workdir: Path, images: list[ImageArtifact]
    ) -> dict[str, str]:
        try:
            with image.open() as stream:
                buffer = stream.read()
            image_id = uuid.uuid4().hex
            content_type = image.content_type or "image/jpeg"
            file_name = f"{image_id}{image_extension(content_type)}"
            temp_path = workdir / file_name
            temp_path.write_bytes(buffer)
        except Exception as exc:
            logger.warning("Embedded image could not be extracted: %s", exc)
            return {"src": TRANSPARENT_PIXEL}

        placeholder = placeholder_for(file_name)
        images.append(
            ImageArtifact(
                id=image_id,
                file_name=file_name,
                content_type=content_type,
                buffer=buffer,
                placeholder_reference=placeholder,
                alt_text=image.alt_text,
                temp_path=temp_path,
            )
        )
        attributes = {"src": placeholder}
        if image.alt_text:
            attributes["alt"] = image.alt_text
        return attributes


__all__ = ["DocxAdapter", "STYLE_MAP"]
