# Path: core/files/__init__.py
# Purpose: Package initializer for image file storage.
# Layer: core/files.
# Details: Exposes FileStorage used by ingestion and the HTTP preview endpoint.

from .storage import DEFAULT_EXTENSIONS, FileStorage

__all__ = ["DEFAULT_EXTENSIONS", "FileStorage"]
