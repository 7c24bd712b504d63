"""Request tracing middleware."""

from __future__ import annotations

import time
import uuid
from typing import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.docpress.logging import get_logger

logger = get_logger(__name__)

TRACE_HEADER = "X-Trace-Id"


class TraceMiddleware(BaseHTTPMiddleware):
    """Assign a trace id to every request and log its outcome."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        trace_id = request.headers.get(TRACE_HEADER) or uuid.uuid4().hex
        request.state.trace_id = trace_id
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        response.headers[TRACE_HEADER] = trace_id
        response.headers["X-Process-Time"] = f"{elapsed:.3f}"
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={"trace_id": trace_id, "duration_ms": round(elapsed * 1000, 2)},
        )
        return response


__all__ = ["TRACE_HEADER", "TraceMiddleware"]
