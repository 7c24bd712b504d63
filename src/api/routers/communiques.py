from __future__ import annotations

from pathlib import PurePath
from typing import Any

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile

from api.dependencies import get_communiques, get_config, get_service, require_api_key
from api.utils import run_sync
from core.docpress.communiques import CommuniqueRepository
from core.docpress.config import AppConfig
from core.docpress.core import CommuniqueRequest, PublishingService
from core.docpress.utils import size_within_limit

router = APIRouter(prefix="/communiques", tags=["communiques"], dependencies=[Depends(require_api_key)])

ALLOWED_EXTENSIONS = {".docx", ".pdf"}
FILE_TYPES = {"docx", "pdf"}


@router.post("/upload", summary="Publish a communique and notify residents", status_code=201)
async def upload_communique(
    file: UploadFile | None = File(None),
    title: str = Form(..., max_length=255),
    description: str = Form("", max_length=1000),
    wp_user_id: int = Form(..., ge=1),
    user_display_name: str | None = Form(None, max_length=255),
    service: PublishingService = Depends(get_service),
    config: AppConfig = Depends(get_config),
) -> dict[str, Any]:
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="FILE_REQUIRED")
    if PurePath(file.filename).suffix.lower() not in ALLOWED_EXTENSIONS:
        raise HTTPException(status_code=400, detail="INVALID_FILE_EXTENSION")
    if not title.strip():
        raise HTTPException(status_code=400, detail="INVALID_TITLE")
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="EMPTY_FILE")
    if not size_within_limit(payload, config.communiques.max_file_size_mb):
        raise HTTPException(status_code=413, detail="SIZE_LIMIT")

    result = await service.publish_communique(
        CommuniqueRequest(
            title=title.strip(),
            payload=payload,
            file_name=file.filename,
            wp_user_id=wp_user_id,
            description=description.strip(),
            user_display_name=user_display_name,
        )
    )
    return result.to_payload()


@router.get("", summary="List published communiques")
async def list_communiques(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    file_type: str | None = Query(None),
    repository: CommuniqueRepository = Depends(get_communiques),
) -> dict[str, Any]:
    if file_type is not None and file_type not in FILE_TYPES:
        raise HTTPException(status_code=400, detail="INVALID_FILE_TYPE")
    records, total = await run_sync(repository.list_page, page, limit, file_type)
    pages = -(-total // limit)
    return {
        "records": [record.to_payload() for record in records],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": pages,
            "has_next": page < pages,
            "has_prev": page > 1,
        },
    }


@router.get("/stats", summary="Communique statistics")
async def communique_stats(repository: CommuniqueRepository = Depends(get_communiques)) -> dict[str, Any]:
    return await run_sync(repository.stats)


@router.get("/{communique_id}", summary="Retrieve a communique with its notification log")
async def get_communique(
    communique_id: int,
    repository: CommuniqueRepository = Depends(get_communiques),
) -> dict[str, Any]:
    record = await run_sync(repository.find_by_id, communique_id)
    if record is None:
        raise HTTPException(status_code=404, detail="COMMUNIQUE_NOT_FOUND")
    return record.to_payload()


__all__ = ["router"]
