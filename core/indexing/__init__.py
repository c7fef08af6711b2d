# Path: core/indexing/__init__.py
# Purpose: Package initializer for indexing utilities.
# Layer: core/indexing.
# Details: Exposes folder scanning used by the bulk ingestion script.

from .scanner import ImageScanner

__all__ = ["ImageScanner"]
