from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from .db import communique_notifications, communiques
from .models import NotificationResult
from .utils import local_now

MULTIPLE_RECIPIENTS = "multiple_recipients"


@dataclass(slots=True)
class CommuniqueRecord:
    id: int
    wp_user_id: int
    title: str
    description: str | None
    original_filename: str
    file_type: str
    wp_post_id: int | None
    wp_post_url: str | None
    wp_media_id: int | None
    created_at: datetime
    user_display_name: str | None = None
    notifications: list[dict[str, Any]] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "id": self.id,
            "wp_user_id": self.wp_user_id,
            "user_display_name": self.user_display_name,
            "title": self.title,
            "description": self.description,
            "original_filename": self.original_filename,
            "file_type": self.file_type,
            "wp_post_id": self.wp_post_id,
            "wp_post_url": self.wp_post_url,
            "wp_media_id": self.wp_media_id,
            "created_at": self.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        }
        if self.notifications:
            payload["notifications"] = self.notifications
        return payload


class CommuniqueRepository:
    def __init__(self, engine: Engine, timezone: str) -> None:
        self._engine = engine
        self._timezone = timezone

    def create(
        self,
        *,
        wp_user_id: int,
        title: str,
        description: str | None,
        original_filename: str,
        file_type: str,
        wp_post_id: int,
        wp_post_url: str,
        wp_media_id: int | None,
        user_display_name: str | None = None,
    ) -> int:
        values = {
            "wp_user_id": wp_user_id,
            "user_display_name": user_display_name,
            "title": title[:255],
            "description": description,
            "original_filename": original_filename,
            "file_type": file_type,
            "wp_post_id": wp_post_id,
            "wp_post_url": wp_post_url,
            "wp_media_id": wp_media_id,
            "created_at": local_now(self._timezone),
        }
        with self._engine.begin() as connection:
            result = connection.execute(sa.insert(communiques).values(**values))
            return int(result.inserted_primary_key[0])

    def record_notifications(self, communique_id: int, result: NotificationResult) -> None:
        now = local_now(self._timezone)
        rows: list[dict[str, Any]] = []
        if result.sent > 0:
            rows.append(
                {
                    "communique_id": communique_id,
                    "email": MULTIPLE_RECIPIENTS,
                    "status": "sent",
                    "error_message": None,
                    "sent_at": now,
                }
            )
        for error in result.errors:
            email, _, message = error.partition(": ")
            if not message or "@" not in email:
                email, message = MULTIPLE_RECIPIENTS, error
            rows.append(
                {
                    "communique_id": communique_id,
                    "email": email[:255],
                    "status": "error",
                    "error_message": message,
                    "sent_at": now,
                }
            )
        if not rows:
            return
        with self._engine.begin() as connection:
            connection.execute(sa.insert(communique_notifications), rows)

    def find_by_id(self, communique_id: int) -> CommuniqueRecord | None:
        with self._engine.connect() as connection:
            row = connection.execute(
                sa.select(communiques).where(communiques.c.id == communique_id)
            ).mappings().first()
            if row is None:
                return None
            notifications = connection.execute(
                sa.select(communique_notifications)
                .where(communique_notifications.c.communique_id == communique_id)
                .order_by(communique_notifications.c.sent_at.desc())
            ).mappings().all()
        record = _to_record(row)
        record.notifications = [
            {
                "email": item["email"],
                "status": item["status"],
                "error_message": item["error_message"],
                "sent_at": item["sent_at"].strftime("%Y-%m-%d %H:%M:%S"),
            }
            for item in notifications
        ]
        return record

    def list_page(self, page: int = 1, limit: int = 10, file_type: str | None = None) -> tuple[list[CommuniqueRecord], int]:
        page = max(1, page)
        limit = max(1, limit)
        conditions = [communiques.c.file_type == file_type] if file_type else []
        with self._engine.connect() as connection:
            total = int(
                connection.execute(
                    sa.select(sa.func.count()).select_from(communiques).where(*conditions)
                ).scalar_one()
            )
            rows = connection.execute(
                sa.select(communiques)
                .where(*conditions)
                .order_by(communiques.c.created_at.desc(), communiques.c.id.desc())
                .limit(limit)
                .offset((page - 1) * limit)
            ).mappings().all()
        return [_to_record(row) for row in rows], total

    def stats(self) -> dict[str, Any]:
        with self._engine.connect() as connection:
            by_type = {
                row.file_type: int(row.n)
                for row in connection.execute(
                    sa.select(communiques.c.file_type, sa.func.count().label("n"))
                    .group_by(communiques.c.file_type)
                )
            }
            by_status = {
                row.status: int(row.n)
                for row in connection.execute(
                    sa.select(communique_notifications.c.status, sa.func.count().label("n"))
                    .group_by(communique_notifications.c.status)
                )
            }
            latest = connection.execute(sa.select(sa.func.max(communiques.c.created_at))).scalar()
        return {
            "total": sum(by_type.values()),
            "by_file_type": by_type,
            "notifications": by_status,
            "latest_created_at": latest.strftime("%Y-%m-%d %H:%M:%S") if latest else None,
        }


def _to_record(row: Any) -> CommuniqueRecord:
    return CommuniqueRecord(
        id=int(row["id"]),
        wp_user_id=int(row["wp_user_id"]),
        user_display_name=row["user_display_name"],
        title=row["title"],
        description=row["description"],
        original_filename=row["original_filename"],
        file_type=row["file_type"],
        wp_post_id=row["wp_post_id"],
        wp_post_url=row["wp_post_url"],
        wp_media_id=row["wp_media_id"],
        created_at=row["created_at"],
    )


__all__ = ["CommuniqueRecord", "CommuniqueRepository", "MULTIPLE_RECIPIENTS"]
