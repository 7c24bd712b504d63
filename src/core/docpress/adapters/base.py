from __future__ import annotations

from pathlib import Path
from typing import Protocol

from ..detection import DocumentType
from ..models import ConversionResult


class ConversionError(RuntimeError):
    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


class Adapter(Protocol):
    document_type: DocumentType

    def convert(self, payload: bytes, file_name: str, workdir: Path) -> ConversionResult:  # pragma: no cover - interface
        ...


__all__ = ["Adapter", "ConversionError"]
