from __future__ import annotations

import html
import time
import uuid
from pathlib import Path

from ..detection import DocumentType, MIME_MAP
from ..logging import get_logger
from ..models import ConversionResult, ImageArtifact
from ..rewriter import placeholder_for

logger = get_logger(__name__)

EXCERPT_LENGTH = 500

PDF_TEMPLATE = (
    '<div class="pdf-document">'
    '<p><a href="{src}" target="_blank" rel="noopener">Descargar {name}</a></p>'
    '<iframe src="{src}" width="100%" height="800" style="border: none;"></iframe>'
    "</div>"
)


class PdfAdapter:
    """Publish a PDF as a media attachment embedded in the post body.

    The PDF itself is the single artifact of the run; its placeholder is
    rewritten to the uploaded media URL like any embedded image. The text is
    extracted with markitdown for the run metadata only.
    """

    document_type = DocumentType.PDF

    def __init__(self) -> None:
        from markitdown import MarkItDown

        self._converter = MarkItDown()

    def convert(self, payload: bytes, file_name: str, workdir: Path) -> ConversionResult:
        started = time.perf_counter()
        artifact_id = uuid.uuid4().hex
        stored_name = f"{artifact_id}.pdf"
        temp_path = workdir / stored_name
        temp_path.write_bytes(payload)

        warnings: list[str] = []
        excerpt = ""
        try:
            excerpt = self._extract_text(temp_path)
        except Exception as exc:
            warnings.append(f"warning: text extraction failed: {exc}")

        placeholder = placeholder_for(stored_name)
        artifact = ImageArtifact(
            id=artifact_id,
            file_name=stored_name,
            content_type=MIME_MAP[DocumentType.PDF],
            buffer=payload,
            placeholder_reference=placeholder,
            alt_text=file_name,
            temp_path=temp_path,
        )
        body = PDF_TEMPLATE.format(src=placeholder, name=html.escape(file_name))
        metadata = {
            "original_size": len(payload),
            "html_length": len(body),
            "images_count": 0,
            "warnings": warnings,
            "text_excerpt": excerpt,
            "conversion_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        return ConversionResult(html=body, images=[artifact], metadata=metadata)

    def _extract_text(self, source: Path) -> str:
        result = self._converter.convert(str(source))
        text = str(getattr(result, "text_content", "") or "")
        return " ".join(text.split())[:EXCERPT_LENGTH]


__all__ = ["PdfAdapter"]
