from __future__ import annotations

from functools import lru_cache

from ..detection import DocumentType
from .base import Adapter, ConversionError
from .docx import DocxAdapter
from .pdf import PdfAdapter

ADAPTERS: dict[DocumentType, type[Adapter]] = {
    DocumentType.DOCX: DocxAdapter,
    DocumentType.PDF: PdfAdapter,
}


@lru_cache(maxsize=None)
def get_adapter(document_type: DocumentType) -> Adapter:
    """Shared converter instance for *document_type*."""

    try:
        factory = ADAPTERS[document_type]
    except KeyError:
        raise KeyError(f"No converter for {document_type.value} documents") from None
    return factory()  # type: ignore[return-value]


__all__ = [
    "ADAPTERS",
    "Adapter",
    "ConversionError",
    "DocxAdapter",
    "PdfAdapter",
    "get_adapter",
]
