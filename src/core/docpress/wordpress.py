"""Async client for the WordPress REST API (posts and media library)."""

from __future__ import annotations

import asyncio
from pathlib import PurePath
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.constraint import USER_AGENT

from .config import AppConfig, ImageConfig
from .images import optimize_image
from .logging import get_logger
from .models import ImageArtifact, MediaReference, PostStatus, UploadFailure, UploadOutcome

logger = get_logger(__name__)

REST_PATH = "/wp-json/wp/v2"


class CmsApiError(RuntimeError):
    """Raised when WordPress is unreachable or answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        return str(value.get("rendered", ""))
    return "" if value is None else str(value)


class _WpModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PostRecord(_WpModel):
    id: int
    title: str = ""
    content: str = ""
    status: str
    link: str = ""
    featured_media: int | None = None
    date: str | None = None
    modified: str | None = None

    @field_validator("title", "content", mode="before")
    @classmethod
    def _unwrap_rendered(cls, value: Any) -> str:
        return _rendered(value)

    @field_validator("featured_media", mode="before")
    @classmethod
    def _zero_is_none(cls, value: Any) -> Any:
        return value or None


class MediaRecord(_WpModel):
    id: int
    source_url: str
    guid: str = ""
    title: str = ""
    alt_text: str = ""
    mime_type: str | None = None

    @field_validator("guid", "title", mode="before")
    @classmethod
    def _unwrap_rendered(cls, value: Any) -> str:
        return _rendered(value)


class DeletionRecord(_WpModel):
    id: int
    deleted: bool
    previous: dict[str, Any] | None = None


class PostDraft(_WpModel):
    title: str
    content: str
    status: PostStatus = "draft"
    featured_media: int | None = None
    author: int | None = None
    format: str = Field(default="standard")

    def to_body(self) -> dict[str, Any]:
        body = self.model_dump(exclude_none=True)
        body["featured_media"] = self.featured_media
        return body


class WordPressClient:
    def __init__(self, http: httpx.AsyncClient, config: AppConfig) -> None:
        self._http = http
        self._config = config

    @classmethod
    def build_http_client(
        cls, site_url: str, user: str, app_password: str, timeout_s: float
    ) -> httpx.AsyncClient:
        base_url = site_url.rstrip("/") + REST_PATH
        return httpx.AsyncClient(
            base_url=base_url,
            auth=httpx.BasicAuth(user, app_password),
            headers={"User-Agent": USER_AGENT},
            timeout=timeout_s,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("WordPress request failed", extra={"method": method, "path": path, "error": str(exc)})
            raise CmsApiError(f"WordPress request failed: {exc}") from exc
        if response.is_error:
            body = _safe_json(response)
            message = body.get("message") if isinstance(body, dict) else None
            logger.error(
                "WordPress answered with an error",
                extra={"method": method, "path": path, "status": response.status_code, "body": body},
            )
            raise CmsApiError(
                message or f"WordPress answered {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return _safe_json(response)

    async def check_connection(self) -> bool:
        await self._request("GET", "/")
        return True

    async def create_post(self, draft: PostDraft) -> PostRecord:
        payload = await self._request("POST", "/posts", json=draft.to_body())
        post = _validate(PostRecord, payload)
        logger.info("WordPress post created", extra={"wp_post_id": post.id, "status": post.status})
        return post

    async def get_post(self, post_id: int) -> PostRecord:
        return _validate(PostRecord, await self._request("GET", f"/posts/{post_id}"))

    async def delete_post(self, post_id: int, force: bool = True) -> DeletionRecord:
        payload = await self._request("DELETE", f"/posts/{post_id}", params={"force": _flag(force)})
        return _deletion(post_id, payload)

    async def get_media(self, media_id: int) -> MediaRecord:
        return _validate(MediaRecord, await self._request("GET", f"/media/{media_id}"))

    async def delete_media(self, media_id: int, force: bool = True) -> DeletionRecord:
        payload = await self._request("DELETE", f"/media/{media_id}", params={"force": _flag(force)})
        return _deletion(media_id, payload)

    async def upload_media(
        self, file_name: str, buffer: bytes, content_type: str, alt_text: str = ""
    ) -> MediaRecord:
        payload = await self._request(
            "POST",
            "/media",
            files={"file": (file_name, buffer, content_type)},
            data={"alt_text": alt_text, "title": PurePath(file_name).stem},
            timeout=self._config.wordpress.upload_timeout_s,
        )
        return _validate(MediaRecord, payload)

    async def upload_images(self, images: list[ImageArtifact]) -> UploadOutcome:
        """Upload all artifacts concurrently and split results into successes and failures."""

        results = await asyncio.gather(
            *(self._upload_one(index, image) for index, image in enumerate(images))
        )
        outcome = UploadOutcome()
        for result in results:
            if isinstance(result, MediaReference):
                outcome.successful.append(result)
            else:
                outcome.failed.append(result)
        logger.info(
            "Image upload finished",
            extra={"successful": len(outcome.successful), "failed": len(outcome.failed)},
        )
        return outcome

    async def _upload_one(self, index: int, image: ImageArtifact) -> MediaReference | UploadFailure:
        buffer, content_type = image.buffer, image.content_type
        images_config: ImageConfig = self._config.images
        if images_config.optimization_enabled and content_type.startswith("image/"):
            optimized = await asyncio.to_thread(optimize_image, buffer, content_type, images_config)
            buffer, content_type = optimized.buffer, optimized.content_type
        try:
            media = await self.upload_media(
                image.file_name, buffer, content_type, alt_text=f"Imagen {index + 1} del documento"
            )
        except Exception as exc:
            logger.warning("Image upload failed", extra={"file_name": image.file_name, "error": str(exc)})
            return UploadFailure(
                image_id=image.id,
                file_name=image.file_name,
                placeholder_reference=image.placeholder_reference,
                error=str(exc),
            )
        logger.info("Image uploaded", extra={"file_name": image.file_name, "wp_media_id": media.id})
        return MediaReference(
            local_image_id=image.id,
            remote_media_id=media.id,
            remote_url=media.source_url,
            placeholder_reference=image.placeholder_reference,
        )


def _flag(value: bool) -> str:
    return "true" if value else "false"


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text[:500]}


def _validate(model: type[_WpModel], payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise CmsApiError(f"Unexpected WordPress response: {exc.error_count()} invalid fields", body=payload) from exc


def _deletion(object_id: int, payload: Any) -> DeletionRecord:
    if not isinstance(payload, dict):
        raise CmsApiError("Unexpected WordPress response to delete", body=payload)
    if "deleted" in payload:
        return _validate(DeletionRecord, {"id": object_id, **payload})
    # without force WordPress moves the object to the trash and returns it
    return DeletionRecord(id=object_id, deleted=payload.get("status") == "trash", previous=payload)


__all__ = [
    "CmsApiError",
    "DeletionRecord",
    "MediaRecord",
    "PostDraft",
    "PostRecord",
    "WordPressClient",
]
