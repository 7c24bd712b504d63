from __future__ import annotations

import os
import time
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_config, get_resources
from api.utils import run_sync
from core.docpress import __version__
from core.docpress.config import AppConfig
from core.docpress.db import ping
from core.docpress.resources import Resources

router = APIRouter(tags=["health"])


def _uptime(request: Request) -> float:
    started = getattr(request.app.state, "started_at", time.monotonic())
    return round(time.monotonic() - started, 3)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health/simple", summary="Liveness check")
def health_simple(request: Request) -> dict[str, Any]:
    return {"status": "ok", "timestamp": _timestamp(), "uptime": _uptime(request)}


@router.get("/health", summary="Dependency health check")
async def health(
    request: Request,
    resources: Resources = Depends(get_resources),
    config: AppConfig = Depends(get_config),
) -> JSONResponse:
    start = time.perf_counter()
    checks: dict[str, dict[str, Any]] = {}

    try:
        await run_sync(ping, resources.engine)
        checks["database"] = {"status": "healthy"}
    except Exception as exc:
        checks["database"] = {"status": "unhealthy", "error": str(exc)}

    try:
        await resources.wordpress.check_connection()
        checks["wordpress"] = {"status": "healthy"}
    except Exception as exc:
        checks["wordpress"] = {"status": "unhealthy", "error": str(exc)}

    checks["telegram"] = {"status": "enabled" if resources.bot is not None else "disabled"}
    temp_dir = config.runtime.temp_dir
    checks["files"] = {
        "status": "healthy" if _writable(temp_dir) else "degraded",
        "temp_dir": str(temp_dir),
        "max_file_size_mb": config.runtime.max_file_size_mb,
    }
    checks["images"] = {
        "status": "enabled" if config.images.optimization_enabled else "disabled",
        "max_width": config.images.max_width,
        "max_height": config.images.max_height,
        "quality": config.images.quality,
    }

    critical_ok = all(checks[name]["status"] == "healthy" for name in ("database", "wordpress"))
    payload = {
        "status": "healthy" if critical_ok else "unhealthy",
        "version": __version__,
        "timestamp": _timestamp(),
        "uptime": _uptime(request),
        "response_time": f"{int((time.perf_counter() - start) * 1000)}ms",
        "checks": checks,
    }
    return JSONResponse(status_code=200 if critical_ok else 503, content=payload)


def _writable(path) -> bool:  # type: ignore[no-untyped-def]
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return os.access(path, os.W_OK)


__all__ = ["router"]
