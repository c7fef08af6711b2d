# Path: config/__init__.py
# Purpose: Package initializer for configuration module.
# Layer: config.
# Details: Exposes settings models for application-wide configuration.

from .settings import (
    AppSettings,
    EmbedderSettings,
    IngestionSettings,
    SearchSettings,
    UploadSettings,
    VectorStoreSettings,
)

__all__ = [
    "AppSettings",
    "EmbedderSettings",
    "IngestionSettings",
    "SearchSettings",
    "UploadSettings",
    "VectorStoreSettings",
]
