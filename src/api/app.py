from __future__ import annotations

import logging
import time

from fastapi import FastAPI

from core.docpress import __version__
from core.docpress.config import AppConfig, apply_settings, load_config
from core.docpress.logging import configure_logging
from core.docpress.resources import Resources, build_resources
from core.settings import Settings, get_settings

from .errors import register_exception_handlers
from .middleware import TraceMiddleware
from .routers import communiques, docx, health, posts, telegram


def create_app(
    settings: Settings | None = None,
    config: AppConfig | None = None,
    resources: Resources | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    config = config or _prepare_config(settings)
    configure_logging(level=settings.log_level.upper(), structured=settings.log_json)
    if resources is None:
        missing = settings.missing_required()
        if missing:
            raise RuntimeError(f"Missing required settings: {', '.join(missing)}")
        resources = build_resources(settings, config)

    app = FastAPI(
        title="docpress",
        version=__version__,
        description="Publish .docx and .pdf documents as WordPress posts",
    )
    app.state.settings = settings
    app.state.config = config
    app.state.resources = resources
    app.state.started_at = time.monotonic()

    app.add_middleware(TraceMiddleware)
    register_exception_handlers(app)

    prefix = config.runtime.api_prefix
    app.include_router(health.router, prefix=prefix)
    app.include_router(docx.router, prefix=prefix)
    app.include_router(posts.router, prefix=prefix)
    app.include_router(communiques.router, prefix=prefix)
    app.include_router(telegram.router, prefix=prefix)

    @app.on_event("shutdown")
    async def _shutdown() -> None:  # pragma: no cover - FastAPI lifecycle
        await app.state.resources.aclose()

    logging.getLogger(__name__).info(
        "Application configured",
        extra={"environment": config.runtime.environment, "telegram": resources.bot is not None},
    )
    return app


def _prepare_config(settings: Settings) -> AppConfig:
    return apply_settings(load_config(settings.config_path), settings)


__all__ = ["create_app"]
