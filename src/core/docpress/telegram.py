"""Thin async client for the Telegram Bot API."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from .logging import get_logger

logger = get_logger(__name__)

API_BASE = "https://api.telegram.org"
ALLOWED_UPDATES = ("message", "channel_post")


class TelegramApiError(RuntimeError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _TgModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class SentMessage(_TgModel):
    message_id: int
    date: int | None = None


class TelegramFile(_TgModel):
    file_id: str
    file_path: str | None = None
    file_size: int | None = None


class WebhookInfo(_TgModel):
    url: str = ""
    has_custom_certificate: bool = False
    pending_update_count: int = 0
    last_error_date: int | None = None
    last_error_message: str | None = None
    max_connections: int | None = None
    allowed_updates: list[str] | None = None


class TelegramClient:
    def __init__(self, http: httpx.AsyncClient, token: str) -> None:
        self._http = http
        self._token = token

    @classmethod
    def build_http_client(cls, timeout_s: float = 30.0) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=API_BASE, timeout=timeout_s)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _call(self, method: str, payload: dict[str, Any] | None = None) -> Any:
        try:
            response = await self._http.post(f"/bot{self._token}/{method}", json=payload or {})
        except httpx.HTTPError as exc:
            raise TelegramApiError(f"Telegram {method} failed: {exc}") from exc
        try:
            body = response.json()
        except ValueError as exc:
            raise TelegramApiError(
                f"Telegram {method} returned invalid JSON", response.status_code
            ) from exc
        if not body.get("ok"):
            description = body.get("description") or f"HTTP {response.status_code}"
            logger.error("Telegram API error", extra={"method": method, "description": description})
            raise TelegramApiError(description, response.status_code)
        return body.get("result")

    async def send_message(self, chat_id: int | str, text: str, reply_to: int | None = None) -> SentMessage:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_to is not None:
            payload["reply_to_message_id"] = reply_to
            payload["allow_sending_without_reply"] = True
        return _parse(SentMessage, await self._call("sendMessage", payload))

    async def edit_message(self, chat_id: int | str, message_id: int, text: str) -> None:
        await self._call("editMessageText", {"chat_id": chat_id, "message_id": message_id, "text": text})

    async def get_file(self, file_id: str) -> TelegramFile:
        return _parse(TelegramFile, await self._call("getFile", {"file_id": file_id}))

    async def download_file(self, file_id: str) -> bytes:
        info = await self.get_file(file_id)
        if not info.file_path:
            raise TelegramApiError(f"Telegram returned no file path for {file_id}")
        try:
            response = await self._http.get(f"/file/bot{self._token}/{info.file_path}")
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TelegramApiError(f"Telegram file download failed: {exc}") from exc
        return response.content

    async def set_webhook(self, url: str, secret_token: str | None = None) -> bool:
        payload: dict[str, Any] = {"url": url, "allowed_updates": list(ALLOWED_UPDATES)}
        if secret_token:
            payload["secret_token"] = secret_token
        return bool(await self._call("setWebhook", payload))

    async def get_webhook_info(self) -> WebhookInfo:
        return _parse(WebhookInfo, await self._call("getWebhookInfo"))

    async def get_updates(self, limit: int = 20) -> list[dict[str, Any]]:
        result = await self._call("getUpdates", {"limit": limit})
        return list(result or [])


def _parse(model: type[_TgModel], payload: Any) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise TelegramApiError(f"Unexpected Telegram response: {exc.error_count()} invalid fields") from exc


__all__ = [
    "ALLOWED_UPDATES",
    "SentMessage",
    "TelegramApiError",
    "TelegramClient",
    "TelegramFile",
    "WebhookInfo",
]
