"""Domain models shared by the conversion, upload and publishing services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

PostStatus = Literal["draft", "publish"]


class HistoryStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"


class PipelineStage(str, Enum):
    RECEIVED = "received"
    CONVERTING = "converting"
    UPLOADING = "uploading"
    REWRITING = "rewriting"
    PUBLISHING = "publishing"
    RECORDING = "recording"
    DONE = "done"


@dataclass(slots=True)
class ImageArtifact:
    """One embedded image extracted during conversion."""

    id: str
    file_name: str
    content_type: str
    buffer: bytes
    placeholder_reference: str
    alt_text: str | None = None
    temp_path: Path | None = None


@dataclass(slots=True)
class ConversionResult:
    html: str
    images: list[ImageArtifact]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def warnings(self) -> list[str]:
        return list(self.metadata.get("warnings", []))


@dataclass(slots=True)
class MediaReference:
    local_image_id: str
    remote_media_id: int
    remote_url: str
    placeholder_reference: str


@dataclass(slots=True)
class UploadFailure:
    image_id: str
    file_name: str
    placeholder_reference: str
    error: str


@dataclass(slots=True)
class UploadOutcome:
    successful: list[MediaReference] = field(default_factory=list)
    failed: list[UploadFailure] = field(default_factory=list)

    @property
    def media_ids(self) -> list[int]:
        return [item.remote_media_id for item in self.successful]

    @property
    def featured_media_id(self) -> int | None:
        return self.successful[0].remote_media_id if self.successful else None


@dataclass(slots=True)
class NotificationResult:
    sent: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class PublishRequest:
    """Input of one document-to-post run, regardless of the inbound channel."""

    title: str
    payload: bytes
    file_name: str
    status: PostStatus = "draft"
    created_by: str = "api_user"
    telegram_chat_id: str | None = None
    telegram_message_id: str | None = None


@dataclass(slots=True)
class PublishResult:
    history_id: int
    wp_post_id: int
    title: str
    status: str
    link: str
    featured_media: int | None
    images_count: int
    failed_images: int
    processing_time: str
    warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "history_id": self.history_id,
            "wp_post_id": self.wp_post_id,
            "title": self.title,
            "status": self.status,
            "link": self.link,
            "featured_media": self.featured_media,
            "images_count": self.images_count,
            "processing_time": self.processing_time,
        }


@dataclass(slots=True)
class MediaDeletion:
    media_id: int
    deleted: bool
    error: str | None = None


@dataclass(slots=True)
class DeletionSummary:
    wp_post_id: int
    wp_deleted: bool
    delete_media_requested: bool
    media_results: list[MediaDeletion] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        successful = sum(1 for item in self.media_results if item.deleted)
        return {
            "wp_post_id": self.wp_post_id,
            "wp_deleted": self.wp_deleted,
            "media_deletion": {
                "requested": self.delete_media_requested,
                "total": len(self.media_results),
                "successful": successful,
                "failed": len(self.media_results) - successful,
                "results": [
                    {"media_id": item.media_id, "deleted": item.deleted, "error": item.error}
                    for item in self.media_results
                ],
            },
        }


@dataclass(slots=True)
class HistoryEntry:
    id: int
    title: str
    status: HistoryStatus
    created_by: str
    wp_post_id: int | None = None
    telegram_chat_id: str | None = None
    telegram_message_id: str | None = None
    file_name: str | None = None
    media_ids: list[int] = field(default_factory=list)
    wp_response: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    timezone: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "wp_post_id": self.wp_post_id,
            "title": self.title,
            "status": self.status.value,
            "created_by": self.created_by,
            "telegram_chat_id": self.telegram_chat_id,
            "telegram_message_id": self.telegram_message_id,
            "file_name": self.file_name,
            "media_ids": list(self.media_ids),
            "wp_response": self.wp_response,
            "error_message": self.error_message,
            "created_at": _format_timestamp(self.created_at),
            "updated_at": _format_timestamp(self.updated_at),
            "timezone": self.timezone,
        }


@dataclass(slots=True)
class HistoryFilters:
    wp_post_id: int | None = None
    created_by: str | None = None
    status: HistoryStatus | None = None
    start_date: date | datetime | None = None
    end_date: date | datetime | None = None


@dataclass(slots=True)
class Pagination:
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0

    def to_payload(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


@dataclass(slots=True)
class HistoryPage:
    records: list[HistoryEntry]
    pagination: Pagination

    def to_payload(self) -> dict[str, Any]:
        return {
            "records": [record.to_payload() for record in self.records],
            "pagination": self.pagination.to_payload(),
        }


def _format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%Y-%m-%d %H:%M:%S")


__all__ = [
    "ConversionResult",
    "DeletionSummary",
    "HistoryEntry",
    "HistoryFilters",
    "HistoryPage",
    "HistoryStatus",
    "ImageArtifact",
    "MediaDeletion",
    "MediaReference",
    "NotificationResult",
    "Pagination",
    "PipelineStage",
    "PostStatus",
    "PublishRequest",
    "PublishResult",
    "UploadFailure",
    "UploadOutcome",
]
