"""Recognise the two document formats the service accepts."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import PurePath

OCTET_STREAM = "application/octet-stream"


class DocumentType(str, Enum):
    DOCX = "docx"
    PDF = "pdf"


@dataclass(slots=True)
class DetectionResult:
    document_type: DocumentType
    mime_type: str
    extension: str


EXTENSION_MAP: dict[str, DocumentType] = {
    ".docx": DocumentType.DOCX,
    ".pdf": DocumentType.PDF,
}

MIME_MAP: dict[DocumentType, str] = {
    DocumentType.DOCX: "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    DocumentType.PDF: "application/pdf",
}

# Word packages are zip archives
SIGNATURES: dict[DocumentType, bytes] = {
    DocumentType.DOCX: b"PK\x03\x04",
    DocumentType.PDF: b"%PDF",
}


class DetectionError(RuntimeError):
    """Raised when an upload is not one of the accepted document formats."""


def is_docx_mime(mime_type: str | None) -> bool:
    return bool(mime_type) and "wordprocessingml" in mime_type


def sniff_mime(payload: bytes, document_type: DocumentType) -> str:
    """MIME type of *payload* when its leading bytes match *document_type*."""

    if payload.startswith(SIGNATURES[document_type]):
        return MIME_MAP[document_type]
    return OCTET_STREAM


def detect_document_type(
    filename: str,
    payload: bytes,
    allowed: tuple[DocumentType, ...] = tuple(DocumentType),
) -> DetectionResult:
    extension = PurePath(filename).suffix.lower()
    document_type = EXTENSION_MAP.get(extension)
    if document_type is None or document_type not in allowed:
        accepted = ", ".join(f".{item.value}" for item in allowed)
        raise DetectionError(f"Unsupported file extension: {extension or '<none>'} (accepted: {accepted})")
    mime = sniff_mime(payload, document_type)
    if mime == OCTET_STREAM:
        raise DetectionError(f"Content sniff mismatch: {filename} is not a valid {document_type.value} file")
    return DetectionResult(document_type=document_type, mime_type=mime, extension=extension)


__all__ = [
    "DetectionError",
    "DetectionResult",
    "DocumentType",
    "EXTENSION_MAP",
    "MIME_MAP",
    "detect_document_type",
    "is_docx_mime",
    "sniff_mime",
]
