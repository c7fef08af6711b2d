# Path: core/metadata/__init__.py
# Purpose: Package initializer for the relational metadata store.
# Layer: core/metadata.
# Details: Exposes the SQLite-backed MetadataStore.

from .sqlite_store import MetadataStore

__all__ = ["MetadataStore"]
