# Path: api/routes/__init__.py
# Purpose: Package initializer for HTTP route modules.
# Layer: api/routes.
# Details: Each module exposes a ``router`` mounted under /api/v1 by the app factory.

from .records import router as records_router
from .search import router as search_router
from .system import router as system_router

__all__ = ["records_router", "search_router", "system_router"]
