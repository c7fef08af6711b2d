# Path: api/app.py
# Purpose: Expose a FastAPI application for record management and similarity search.
# Layer: api.
# Details: Mounts the routers under /api/v1, maps core errors to status codes, and owns service lifecycle when it built them.

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from core.errors import EmbeddingError, ImageRecordError, InvalidRequestError, NotFoundError
from core.services import ServiceContainer, build_services
from .middleware import RequestContextMiddleware
from .routes import records_router, search_router, system_router

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def status_for(error: ImageRecordError) -> int:
    """Map a core error to its HTTP status code."""

    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, InvalidRequestError):
        return 400
    if isinstance(error, EmbeddingError) and error.retryable:
        return 503
    return 500


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Create a FastAPI app instance.

    When ``services`` is supplied the caller owns their lifecycle; otherwise
    they are built from the environment at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = services is None
        app.state.services = services or build_services()
        try:
            yield
        finally:
            if owned:
                app.state.services.close()

    app = FastAPI(title="Image Record Search API", version="0.1.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(ImageRecordError)
    async def handle_core_error(request: Request, exc: ImageRecordError) -> JSONResponse:
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("Request %s failed: %s", request.url.path, exc, extra={"extra_data": exc.context()})
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.message, "step": exc.step, "retryable": exc.retryable},
        )

    app.include_router(system_router, prefix=API_PREFIX)
    app.include_router(records_router, prefix=API_PREFIX)
    app.include_router(search_router, prefix=API_PREFIX)
    return app
