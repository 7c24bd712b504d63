"""FastAPI dependency providers for application services."""

from __future__ import annotations

import hmac

from fastapi import Header, HTTPException, Request

from core.docpress.bot import TelegramBot
from core.docpress.communiques import CommuniqueRepository
from core.docpress.config import AppConfig
from core.docpress.core import PublishingService
from core.docpress.history import HistoryRepository
from core.docpress.resources import Resources
from core.settings import Settings


def get_config(request: Request) -> AppConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="CONFIG_UNAVAILABLE")
    return config


def get_settings_dep(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise HTTPException(status_code=503, detail="SETTINGS_UNAVAILABLE")
    return settings


def get_resources(request: Request) -> Resources:
    resources = getattr(request.app.state, "resources", None)
    if resources is None:
        raise HTTPException(status_code=503, detail="RESOURCES_UNAVAILABLE")
    return resources


def get_service(request: Request) -> PublishingService:
    return get_resources(request).service


def get_history(request: Request) -> HistoryRepository:
    return get_resources(request).history


def get_communiques(request: Request) -> CommuniqueRepository:
    return get_resources(request).communiques


def get_bot(request: Request) -> TelegramBot:
    bot = get_resources(request).bot
    if bot is None:
        raise HTTPException(status_code=503, detail="TELEGRAM_DISABLED")
    return bot


def require_api_key(
    request: Request,
    x_api_key: str | None = Header(default=None, alias="X-API-KEY"),
) -> None:
    expected = get_settings_dep(request).admin_api_key
    if not expected:
        raise HTTPException(status_code=503, detail="API_KEY_NOT_CONFIGURED")
    if not x_api_key:
        raise HTTPException(status_code=401, detail="API_KEY_REQUIRED")
    if not hmac.compare_digest(x_api_key.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="API_KEY_INVALID")


def verify_telegram_secret(
    request: Request,
    telegram_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
    legacy_secret: str | None = Header(default=None, alias="X-Telegram-Secret"),
    authorization: str | None = Header(default=None),
) -> None:
    settings = get_settings_dep(request)
    if not settings.telegram_enabled:
        raise HTTPException(status_code=503, detail="TELEGRAM_DISABLED")
    provided = telegram_token or legacy_secret
    if not provided and authorization:
        provided = authorization.removeprefix("Bearer ").strip()
    if not provided:
        raise HTTPException(status_code=401, detail="WEBHOOK_SECRET_REQUIRED")
    expected = settings.telegram_webhook_secret or ""
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        raise HTTPException(status_code=403, detail="WEBHOOK_SECRET_INVALID")


__all__ = [
    "get_bot",
    "get_communiques",
    "get_config",
    "get_history",
    "get_resources",
    "get_service",
    "get_settings_dep",
    "require_api_key",
    "verify_telegram_secret",
]
