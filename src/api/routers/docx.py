from __future__ import annotations

from pathlib import PurePath
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from api.dependencies import get_config, get_service, require_api_key
from core.docpress.config import AppConfig
from core.docpress.core import PublishingService
from core.docpress.detection import is_docx_mime
from core.docpress.models import PublishRequest
from core.docpress.utils import size_within_limit, strip_extension

router = APIRouter(prefix="/docx", tags=["docx"], dependencies=[Depends(require_api_key)])

VALID_STATUSES = {"draft", "publish"}


@router.post("/upload", summary="Convert a .docx and create a WordPress post", status_code=201)
async def upload_docx(
    request: Request,
    file: UploadFile | None = File(None),
    title: str | None = Form(None),
    status: str = Form("draft"),
    created_by: str = Form("api_user"),
    service: PublishingService = Depends(get_service),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="FILE_REQUIRED")
    has_docx_extension = PurePath(file.filename).suffix.lower() == ".docx"
    if not (has_docx_extension or is_docx_mime(file.content_type)):
        raise HTTPException(status_code=400, detail="INVALID_FILE_TYPE")
    file_name = file.filename if has_docx_extension else f"{strip_extension(file.filename, 'documento')}.docx"

    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="EMPTY_FILE")
    _enforce_size_limit(payload, config.runtime.max_file_size_mb)

    resolved_title = (title if title is not None else strip_extension(file.filename)).strip()
    if not 1 <= len(resolved_title) <= 255:
        raise HTTPException(status_code=400, detail="INVALID_TITLE")
    if status not in VALID_STATUSES:
        raise HTTPException(status_code=400, detail="INVALID_STATUS")
    created_by = created_by.strip()
    if not 1 <= len(created_by) <= 255:
        raise HTTPException(status_code=400, detail="INVALID_CREATED_BY")

    result = await service.publish_document(
        PublishRequest(
            title=resolved_title,
            payload=payload,
            file_name=file_name,
            status=status,  # type: ignore[arg-type]
            created_by=created_by,
        )
    )
    response = result.to_payload()
    response["trace_id"] = getattr(request.state, "trace_id", None)
    return response


def _enforce_size_limit(payload: bytes, max_mb: int) -> None:
    if not size_within_limit(payload, max_mb):
        raise HTTPException(status_code=413, detail="SIZE_LIMIT")


__all__ = ["router"]
