from __future__ import annotations

import asyncio
import html
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from .adapters import ConversionError, get_adapter
from .communiques import CommuniqueRepository
from .config import AppConfig
from .detection import DetectionError, DetectionResult, DocumentType, detect_document_type
from .history import HistoryNotFound, HistoryRepository
from .logging import StageTimings, get_logger
from .mailer import NotificationError
from .models import (
    ConversionResult,
    DeletionSummary,
    HistoryStatus,
    ImageArtifact,
    MediaDeletion,
    NotificationResult,
    PipelineStage,
    PublishRequest,
    PublishResult,
    UploadOutcome,
)
from .notifications import Announcement, NotificationDispatcher
from .rewriter import replace_image_references, unresolved_placeholders
from .utils import (
    RunPaths,
    cleanup_run_paths,
    ensure_run_paths,
    format_processing_time,
    generate_run_id,
)
from .wordpress import CmsApiError, PostDraft, PostRecord, WordPressClient

logger = get_logger(__name__)

StageCallback = Callable[[PipelineStage], Awaitable[None]]


async def _ignore_stage(_: PipelineStage) -> None:
    return None


@dataclass(slots=True)
class CommuniqueRequest:
    title: str
    payload: bytes
    file_name: str
    wp_user_id: int
    description: str = ""
    user_display_name: str | None = None


@dataclass(slots=True)
class CommuniqueResult:
    communique_id: int
    wp_post_id: int
    wp_post_url: str
    wp_media_id: int | None
    file_type: str
    title: str
    notifications: NotificationResult
    notification_error: str | None = None
    warnings: list[str] = field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.communique_id,
            "title": self.title,
            "file_type": self.file_type,
            "wp_post_id": self.wp_post_id,
            "wp_post_url": self.wp_post_url,
            "wp_media_id": self.wp_media_id,
            "notifications": {
                "sent": self.notifications.sent,
                "failed": self.notifications.failed,
                "total": self.notifications.total,
                "errors": list(self.notifications.errors),
            },
            "notification_error": self.notification_error,
        }


class PublishingService:
    """Runs the document-to-post pipeline and the deletion flow."""

    def __init__(
        self,
        config: AppConfig,
        wordpress: WordPressClient,
        history: HistoryRepository,
        communiques: CommuniqueRepository | None = None,
        dispatcher: NotificationDispatcher | None = None,
    ) -> None:
        self._config = config
        self._wordpress = wordpress
        self._history = history
        self._communiques = communiques
        self._dispatcher = dispatcher

    @property
    def history(self) -> HistoryRepository:
        return self._history

    async def publish_document(
        self, request: PublishRequest, on_stage: StageCallback | None = None
    ) -> PublishResult:
        notify = on_stage or _ignore_stage
        timings = StageTimings()
        await notify(PipelineStage.RECEIVED)
        history_id = await asyncio.to_thread(
            self._history.create,
            {
                "title": request.title,
                "status": HistoryStatus.PROCESSING,
                "created_by": request.created_by,
                "telegram_chat_id": request.telegram_chat_id,
                "telegram_message_id": request.telegram_message_id,
                "file_name": request.file_name,
            },
        )
        log_context = {"history_id": history_id, "file_name": request.file_name}
        logger.info("Publishing run started", extra=log_context)

        run_paths = None
        completed = False
        try:
            run_paths = ensure_run_paths(self._config, generate_run_id())
            await notify(PipelineStage.CONVERTING)
            conversion = await self._convert(request.file_name, request.payload, (DocumentType.DOCX,), run_paths, timings)

            outcome = UploadOutcome()
            if conversion.images:
                await notify(PipelineStage.UPLOADING)
                outcome = await self._upload(conversion.images, timings)
                await asyncio.to_thread(self._history.update, history_id, {"media_ids": outcome.media_ids})

            await notify(PipelineStage.REWRITING)
            content = replace_image_references(conversion.html, outcome.successful)
            unresolved = unresolved_placeholders(content)
            if unresolved:
                logger.warning("Images left as placeholders", extra={**log_context, "count": unresolved})

            await notify(PipelineStage.PUBLISHING)
            post = await self._create_post(
                PostDraft(
                    title=request.title,
                    content=content,
                    status=request.status,
                    featured_media=outcome.featured_media_id,
                ),
                timings,
            )

            await notify(PipelineStage.RECORDING)
            await asyncio.to_thread(
                self._history.mark_completed, history_id, post.id, post.model_dump(mode="json")
            )
            completed = True
        except Exception as exc:
            if not completed:
                await self._record_failure(history_id, exc)
            raise
        finally:
            if run_paths is not None:
                cleanup_run_paths(run_paths)

        await notify(PipelineStage.DONE)
        processing_time = format_processing_time(timings.elapsed_ms())
        logger.info(
            "Publishing run completed",
            extra={**log_context, "wp_post_id": post.id, "timings": timings.to_dict()},
        )
        return PublishResult(
            history_id=history_id,
            wp_post_id=post.id,
            title=post.title,
            status=post.status,
            link=post.link,
            featured_media=post.featured_media,
            images_count=len(outcome.successful),
            failed_images=len(outcome.failed),
            processing_time=processing_time,
            warnings=conversion.warnings,
        )

    async def delete_post(self, wp_post_id: int, delete_media: bool = False) -> DeletionSummary:
        entry = await asyncio.to_thread(self._history.find_by_post_id, wp_post_id)
        if entry is None:
            raise HistoryNotFound(f"No history entry for WordPress post {wp_post_id}")

        media_results: list[MediaDeletion] = []
        if delete_media and entry.media_ids:
            media_results = list(
                await asyncio.gather(*(self._delete_media(media_id) for media_id in entry.media_ids))
            )

        deletion = await self._wordpress.delete_post(wp_post_id, force=True)
        await asyncio.to_thread(self._history.mark_deleted, wp_post_id)
        summary = DeletionSummary(
            wp_post_id=wp_post_id,
            wp_deleted=deletion.deleted,
            delete_media_requested=delete_media,
            media_results=media_results,
        )
        logger.info("WordPress post deleted", extra=summary.to_payload())
        return summary

    async def publish_communique(self, request: CommuniqueRequest) -> CommuniqueResult:
        if self._communiques is None:
            raise RuntimeError("Communique repository is not configured")
        timings = StageTimings()
        run_paths = ensure_run_paths(self._config, generate_run_id("communique"))
        try:
            detection = self._detect(request.file_name, request.payload, (DocumentType.DOCX, DocumentType.PDF))
            conversion = await self._convert(request.file_name, request.payload, (detection.document_type,), run_paths, timings)
            outcome = UploadOutcome()
            if conversion.images:
                outcome = await self._upload(conversion.images, timings)
            if detection.document_type is DocumentType.PDF and not outcome.successful:
                reason = outcome.failed[0].error if outcome.failed else "no media created"
                raise CmsApiError(f"PDF upload failed: {reason}")
            body = replace_image_references(conversion.html, outcome.successful)
            post = await self._create_post(
                PostDraft(
                    title=request.title,
                    content=wrap_communique(detection.document_type, request.title, request.description, body),
                    status=self._config.communiques.post_status,  # type: ignore[arg-type]
                    featured_media=outcome.featured_media_id,
                    author=request.wp_user_id,
                ),
                timings,
            )
        finally:
            cleanup_run_paths(run_paths)

        communique_id = await asyncio.to_thread(
            self._communiques.create,
            wp_user_id=request.wp_user_id,
            user_display_name=request.user_display_name,
            title=request.title,
            description=request.description or None,
            original_filename=request.file_name,
            file_type=detection.document_type.value,
            wp_post_id=post.id,
            wp_post_url=post.link,
            wp_media_id=outcome.featured_media_id,
        )

        notifications, notification_error = await self._notify(
            Announcement(title=request.title, description=request.description, url=post.link)
        )
        await asyncio.to_thread(self._communiques.record_notifications, communique_id, notifications)
        logger.info(
            "Communique published",
            extra={"communique_id": communique_id, "wp_post_id": post.id, "sent": notifications.sent},
        )
        return CommuniqueResult(
            communique_id=communique_id,
            wp_post_id=post.id,
            wp_post_url=post.link,
            wp_media_id=outcome.featured_media_id,
            file_type=detection.document_type.value,
            title=post.title or request.title,
            notifications=notifications,
            notification_error=notification_error,
            warnings=conversion.warnings,
        )

    def _detect(
        self, file_name: str, payload: bytes, allowed: tuple[DocumentType, ...]
    ) -> DetectionResult:
        try:
            return detect_document_type(file_name, payload, allowed)
        except DetectionError as exc:
            raise ConversionError("UNSUPPORTED_FORMAT", str(exc)) from exc

    async def _convert(
        self,
        file_name: str,
        payload: bytes,
        allowed: tuple[DocumentType, ...],
        run_paths: RunPaths,
        timings: StageTimings,
    ) -> ConversionResult:
        detection = self._detect(file_name, payload, allowed)
        try:
            adapter = get_adapter(detection.document_type)
        except KeyError as exc:
            raise ConversionError("NO_ADAPTER", f"No adapter for {detection.document_type.value}") from exc
        started = time.perf_counter()
        result = await asyncio.to_thread(adapter.convert, payload, file_name, run_paths.base_dir)
        timings.convert_ms = (time.perf_counter() - started) * 1000
        if result.warnings:
            logger.info("Conversion warnings", extra={"file_name": file_name, "warnings": result.warnings})
        return result

    async def _upload(self, images: list[ImageArtifact], timings: StageTimings) -> UploadOutcome:
        started = time.perf_counter()
        outcome = await self._wordpress.upload_images(images)
        timings.upload_ms = (time.perf_counter() - started) * 1000
        return outcome

    async def _create_post(self, draft: PostDraft, timings: StageTimings) -> PostRecord:
        started = time.perf_counter()
        post = await self._wordpress.create_post(draft)
        timings.publish_ms = (time.perf_counter() - started) * 1000
        return post

    async def _delete_media(self, media_id: int) -> MediaDeletion:
        try:
            result = await self._wordpress.delete_media(media_id, force=True)
        except Exception as exc:
            logger.warning("Media deletion failed", extra={"media_id": media_id, "error": str(exc)})
            return MediaDeletion(media_id=media_id, deleted=False, error=str(exc))
        return MediaDeletion(media_id=media_id, deleted=result.deleted)

    async def _record_failure(self, history_id: int, exc: Exception) -> None:
        message = str(exc) or exc.__class__.__name__
        logger.error("Publishing run failed", extra={"history_id": history_id, "error": message})
        try:
            await asyncio.to_thread(self._history.mark_failed, history_id, message)
        except Exception:
            logger.exception("Could not mark history entry as failed", extra={"history_id": history_id})

    async def _notify(self, announcement: Announcement) -> tuple[NotificationResult, str | None]:
        if self._dispatcher is None:
            return NotificationResult(), None
        try:
            result = await asyncio.to_thread(self._dispatcher.dispatch, announcement)
        except NotificationError as exc:
            logger.error("Notification step failed", extra={"error": str(exc)})
            return NotificationResult(errors=[str(exc)]), str(exc)
        return result, None


def wrap_communique(document_type: DocumentType, title: str, description: str, body: str) -> str:
    css_class = "pdf-communique" if document_type is DocumentType.PDF else "docx-communique"
    parts = [f'<div class="{css_class}">', f"<h2>{html.escape(title)}</h2>"]
    if description:
        parts.append(f'<p class="description">{html.escape(description)}</p>')
    parts.append(f'<div class="content">{body}</div>')
    parts.append("</div>")
    return "".join(parts)


__all__ = [
    "CommuniqueRequest",
    "CommuniqueResult",
    "ConversionError",
    "PublishingService",
    "StageCallback",
    "wrap_communique",
]
