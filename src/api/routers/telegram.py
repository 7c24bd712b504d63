from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request

from api.dependencies import (
    get_bot,
    get_resources,
    get_settings_dep,
    require_api_key,
    verify_telegram_secret,
)
from core.docpress.bot import TelegramBot
from core.docpress.logging import get_logger
from core.docpress.resources import Resources
from core.settings import Settings

logger = get_logger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])


@router.post(
    "/webhook",
    summary="Receive Telegram updates",
    dependencies=[Depends(verify_telegram_secret)],
)
async def webhook(
    request: Request,
    update: dict[str, Any] = Body(...),
    bot: TelegramBot = Depends(get_bot),
) -> dict[str, Any]:
    trace_id = getattr(request.state, "trace_id", None)
    try:
        outcome = await bot.process_update(update)
    except Exception as exc:
        logger.exception("Telegram update failed", extra={"trace_id": trace_id, "update_id": update.get("update_id")})
        return {"ok": False, "error": str(exc), "trace_id": trace_id}
    return {"ok": True, "result": outcome.to_payload(), "trace_id": trace_id}


@router.post(
    "/set-webhook",
    summary="Register the webhook URL with Telegram",
    dependencies=[Depends(require_api_key)],
)
async def set_webhook(
    payload: dict[str, Any] = Body(...),
    resources: Resources = Depends(get_resources),
    settings: Settings = Depends(get_settings_dep),
) -> dict[str, Any]:
    url = str(payload.get("url") or payload.get("webhook_url") or "")
    if not url:
        raise HTTPException(status_code=400, detail="WEBHOOK_URL_REQUIRED")
    if not url.startswith("https://"):
        raise HTTPException(status_code=400, detail="WEBHOOK_URL_MUST_BE_HTTPS")
    if resources.telegram is None:
        raise HTTPException(status_code=503, detail="TELEGRAM_DISABLED")
    await resources.telegram.set_webhook(url, settings.telegram_webhook_secret)
    info = await resources.telegram.get_webhook_info()
    return {"webhook_url": url, "webhook_info": info.model_dump()}


@router.get(
    "/webhook-info",
    summary="Current Telegram webhook registration",
    dependencies=[Depends(require_api_key)],
)
async def webhook_info(resources: Resources = Depends(get_resources)) -> dict[str, Any]:
    if resources.telegram is None:
        raise HTTPException(status_code=503, detail="TELEGRAM_DISABLED")
    info = await resources.telegram.get_webhook_info()
    return info.model_dump()


__all__ = ["router"]
