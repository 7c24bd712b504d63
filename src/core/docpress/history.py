"""Persistence of pipeline runs in the posts history table."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Any, Mapping

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from .db import posts_history
from .models import HistoryEntry, HistoryFilters, HistoryPage, HistoryStatus, Pagination
from .utils import local_now

_WRITABLE_FIELDS = {
    "wp_post_id",
    "title",
    "status",
    "created_by",
    "telegram_chat_id",
    "telegram_message_id",
    "file_name",
    "media_ids",
    "wp_response",
    "error_message",
}


class HistoryNotFound(LookupError):
    """Raised when no history entry matches the requested identifier."""


class HistoryRepository:
    def __init__(self, engine: Engine, timezone: str) -> None:
        self._engine = engine
        self._timezone = timezone

    def create(self, fields: Mapping[str, Any]) -> int:
        values = self._clean(fields)
        values.setdefault("status", HistoryStatus.PROCESSING.value)
        now = local_now(self._timezone)
        values.update(created_at=now, updated_at=now, timezone=self._timezone)
        with self._engine.begin() as connection:
            result = connection.execute(sa.insert(posts_history).values(**values))
            return int(result.inserted_primary_key[0])

    def update(self, entry_id: int, fields: Mapping[str, Any]) -> None:
        values = self._clean(fields)
        values["updated_at"] = local_now(self._timezone)
        with self._engine.begin() as connection:
            connection.execute(
                sa.update(posts_history).where(posts_history.c.id == entry_id).values(**values)
            )

    def mark_completed(self, entry_id: int, wp_post_id: int, wp_response: dict[str, Any]) -> None:
        self.update(
            entry_id,
            {"wp_post_id": wp_post_id, "status": HistoryStatus.COMPLETED, "wp_response": wp_response},
        )

    def mark_failed(self, entry_id: int, error_message: str) -> None:
        self.update(entry_id, {"status": HistoryStatus.FAILED, "error_message": error_message})

    def mark_deleted(self, wp_post_id: int) -> int:
        with self._engine.begin() as connection:
            result = connection.execute(
                sa.update(posts_history)
                .where(posts_history.c.wp_post_id == wp_post_id)
                .values(status=HistoryStatus.DELETED.value, updated_at=local_now(self._timezone))
            )
            return result.rowcount

    def find_by_id(self, entry_id: int) -> HistoryEntry | None:
        query = sa.select(posts_history).where(posts_history.c.id == entry_id)
        with self._engine.connect() as connection:
            row = connection.execute(query).mappings().first()
        return _to_entry(row) if row else None

    def find_by_post_id(self, wp_post_id: int) -> HistoryEntry | None:
        query = (
            sa.select(posts_history)
            .where(posts_history.c.wp_post_id == wp_post_id)
            .order_by(posts_history.c.id.desc())
            .limit(1)
        )
        with self._engine.connect() as connection:
            row = connection.execute(query).mappings().first()
        return _to_entry(row) if row else None

    def search(self, filters: HistoryFilters, page: int = 1, limit: int = 20) -> HistoryPage:
        page = max(1, page)
        limit = max(1, limit)
        conditions = _conditions(filters)
        count_query = sa.select(sa.func.count()).select_from(posts_history).where(*conditions)
        query = (
            sa.select(posts_history)
            .where(*conditions)
            .order_by(posts_history.c.created_at.desc(), posts_history.c.id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        with self._engine.connect() as connection:
            total = int(connection.execute(count_query).scalar_one())
            rows = connection.execute(query).mappings().all()
        return HistoryPage(
            records=[_to_entry(row) for row in rows],
            pagination=Pagination(page=page, limit=limit, total=total),
        )

    def recent(self, limit: int = 10) -> list[HistoryEntry]:
        return self.search(HistoryFilters(), page=1, limit=limit).records

    @staticmethod
    def _clean(fields: Mapping[str, Any]) -> dict[str, Any]:
        unknown = set(fields) - _WRITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown history fields: {', '.join(sorted(unknown))}")
        values = dict(fields)
        status = values.get("status")
        if isinstance(status, HistoryStatus):
            values["status"] = status.value
        if "title" in values and values["title"] is not None:
            values["title"] = str(values["title"])[:255]
        return values


def _conditions(filters: HistoryFilters) -> list[sa.ColumnElement[bool]]:
    conditions: list[sa.ColumnElement[bool]] = []
    if filters.wp_post_id is not None:
        conditions.append(posts_history.c.wp_post_id == filters.wp_post_id)
    if filters.status is not None:
        conditions.append(posts_history.c.status == HistoryStatus(filters.status).value)
    if filters.created_by:
        conditions.append(posts_history.c.created_by.contains(filters.created_by, autoescape=True))
    if filters.start_date is not None:
        conditions.append(posts_history.c.created_at >= _start_of(filters.start_date))
    if filters.end_date is not None:
        conditions.append(posts_history.c.created_at < _end_bound(filters.end_date))
    return conditions


def _start_of(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    return datetime.combine(value, time.min)


def _end_bound(value: date | datetime) -> datetime:
    """Exclusive upper bound; a bare date (or midnight) covers the whole day."""

    if isinstance(value, datetime):
        naive = value.replace(tzinfo=None)
        if naive.time() == time.min:
            return naive + timedelta(days=1)
        return naive + timedelta(microseconds=1)
    return datetime.combine(value, time.min) + timedelta(days=1)


def _to_entry(row: Mapping[str, Any]) -> HistoryEntry:
    return HistoryEntry(
        id=int(row["id"]),
        title=row["title"],
        status=HistoryStatus(row["status"]),
        created_by=row["created_by"],
        wp_post_id=row["wp_post_id"],
        telegram_chat_id=row["telegram_chat_id"],
        telegram_message_id=row["telegram_message_id"],
        file_name=row["file_name"],
        media_ids=[int(item) for item in (row["media_ids"] or [])],
        wp_response=row["wp_response"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        timezone=row["timezone"],
    )


__all__ = ["HistoryNotFound", "HistoryRepository"]
