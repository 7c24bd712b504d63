"""Exception handlers mapping domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.docpress.adapters import ConversionError
from core.docpress.detection import DetectionError
from core.docpress.history import HistoryNotFound
from core.docpress.logging import get_logger
from core.docpress.mailer import NotificationError
from core.docpress.telegram import TelegramApiError
from core.docpress.wordpress import CmsApiError

logger = get_logger(__name__)

GENERIC_UPSTREAM_MESSAGE = "Upstream service unavailable"


def _trace_id(request: Request) -> str | None:
    return getattr(request.state, "trace_id", None)


def _is_production(request: Request) -> bool:
    config = getattr(request.app.state, "config", None)
    return bool(config and config.runtime.is_production)


def _error(request: Request, status_code: int, detail: str, message: str | None = None) -> JSONResponse:
    content: dict[str, object] = {"detail": detail, "trace_id": _trace_id(request)}
    if message:
        content["message"] = message
    return JSONResponse(status_code=status_code, content=content)


def _upstream(request: Request, status_code: int, detail: str, exc: Exception) -> JSONResponse:
    message = GENERIC_UPSTREAM_MESSAGE if _is_production(request) else str(exc)
    return _error(request, status_code, detail, message)


async def conversion_error_handler(request: Request, exc: ConversionError) -> JSONResponse:
    return _error(request, 400, exc.code, str(exc))


async def detection_error_handler(request: Request, exc: DetectionError) -> JSONResponse:
    return _error(request, 400, "UNSUPPORTED_FORMAT", str(exc))


async def not_found_handler(request: Request, exc: HistoryNotFound) -> JSONResponse:
    return _error(request, 404, "HISTORY_NOT_FOUND", str(exc))


async def cms_error_handler(request: Request, exc: CmsApiError) -> JSONResponse:
    logger.error(
        "WordPress error",
        extra={"trace_id": _trace_id(request), "upstream_status": exc.status_code, "body": exc.body},
    )
    return _upstream(request, 502, "CMS_ERROR", exc)


async def notification_error_handler(request: Request, exc: NotificationError) -> JSONResponse:
    logger.error("Mail transport error", extra={"trace_id": _trace_id(request), "error": str(exc)})
    return _upstream(request, 502, "SMTP_ERROR", exc)


async def telegram_error_handler(request: Request, exc: TelegramApiError) -> JSONResponse:
    logger.error("Telegram error", extra={"trace_id": _trace_id(request), "error": str(exc)})
    return _upstream(request, 502, "TELEGRAM_ERROR", exc)


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error", extra={"trace_id": _trace_id(request), "error": str(exc)})
    return _upstream(request, 503, "DATABASE_ERROR", exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ConversionError, conversion_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(DetectionError, detection_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HistoryNotFound, not_found_handler)  # type: ignore[arg-type]
    app.add_exception_handler(CmsApiError, cms_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(NotificationError, notification_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(TelegramApiError, telegram_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, database_error_handler)  # type: ignore[arg-type]


__all__ = ["register_exception_handlers"]
