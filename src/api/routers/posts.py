from __future__ import annotations

from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_history, get_service, require_api_key
from api.utils import run_sync
from core.docpress.core import PublishingService
from core.docpress.history import HistoryRepository
from core.docpress.models import HistoryFilters, HistoryStatus

router = APIRouter(prefix="/posts", tags=["posts"], dependencies=[Depends(require_api_key)])


@router.delete("/{wp_post_id}", summary="Delete a WordPress post and optionally its media")
async def delete_post(
    wp_post_id: str,
    delete_media: bool = Query(False),
    service: PublishingService = Depends(get_service),
) -> dict[str, Any]:
    post_id = _positive_int(wp_post_id)
    if post_id is None:
        raise HTTPException(status_code=400, detail="INVALID_POST_ID")
    summary = await service.delete_post(post_id, delete_media=delete_media)
    return summary.to_payload()


@router.get("/history", summary="Search the publishing history")
async def search_history(
    wp_post_id: int | None = Query(None, ge=1),
    created_by: str | None = Query(None, max_length=255),
    status: str | None = Query(None),
    start_date: str | None = Query(None),
    end_date: str | None = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    history: HistoryRepository = Depends(get_history),
) -> dict[str, Any]:
    try:
        status_filter = HistoryStatus(status) if status else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="INVALID_STATUS") from exc
    start = _parse_date(start_date, "INVALID_START_DATE")
    end = _parse_date(end_date, "INVALID_END_DATE")
    if start is not None and end is not None and _as_datetime(end) < _as_datetime(start):
        raise HTTPException(status_code=400, detail="INVALID_DATE_RANGE")

    filters = HistoryFilters(
        wp_post_id=wp_post_id,
        created_by=created_by or None,
        status=status_filter,
        start_date=start,
        end_date=end,
    )
    result = await run_sync(history.search, filters, page, limit)
    return result.to_payload()


@router.get("/history/{entry_id}", summary="Retrieve one history entry")
async def get_history_entry(
    entry_id: int,
    history: HistoryRepository = Depends(get_history),
) -> dict[str, Any]:
    entry = await run_sync(history.find_by_id, entry_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="HISTORY_NOT_FOUND")
    return entry.to_payload()


def _positive_int(value: str) -> int | None:
    if not value.isdigit():
        return None
    number = int(value)
    return number if number > 0 else None


def _parse_date(value: str | None, code: str) -> date | datetime | None:
    if not value:
        return None
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=code) from exc


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, datetime.min.time())


__all__ = ["router"]
