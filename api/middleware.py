# Path: api/middleware.py
# Purpose: Propagate a request id into log records and response headers.
# Layer: api.
# Details: Reads X-Request-ID when supplied, otherwise generates a short one.

from __future__ import annotations

import logging
import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from core.logging import log_with_context, request_id_ctx

logger = logging.getLogger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Set the request id context variable and log request completion with timing."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
        token = request_id_ctx.set(request_id)
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000
            log_with_context(
                logger,
                logging.INFO,
                f"{request.method} {request.url.path} -> {response.status_code}",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )
            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            return response
        except Exception:
            logger.exception("Request failed: %s %s", request.method, request.url.path)
            raise
        finally:
            request_id_ctx.reset(token)
