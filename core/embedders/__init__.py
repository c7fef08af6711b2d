# Path: core/embedders/__init__.py
# Purpose: Package initializer for embedder implementations and interfaces.
# Layer: core/embedders.
# Details: Exposes base interface, reference implementations, and a settings-driven factory.

from config.settings import EmbedderSettings

from .base import Embedder, detect_image_format
from .http_embedder import HttpEmbedder
from .pixel_embedder import PixelStatsEmbedder


def make_embedder(settings: EmbedderSettings, dim: int) -> Embedder:
    """Instantiate the embedder named in settings for the configured index dimension."""

    if settings.name == "http":
        return HttpEmbedder(
            url=settings.url,
            api_key=settings.api_key,
            model=settings.model,
            dim=dim,
            timeout=settings.timeout_seconds,
        )
    if settings.name == "pixel":
        return PixelStatsEmbedder(dim=dim)
    raise ValueError(f"Unknown embedder: '{settings.name}'. Available: http, pixel")


__all__ = ["Embedder", "HttpEmbedder", "PixelStatsEmbedder", "detect_image_format", "make_embedder"]
