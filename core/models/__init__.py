# Path: core/models/__init__.py
# Purpose: Package initializer for domain model definitions.
# Layer: core/models.
# Details: Exposes dataclasses used across ingestion, search, and storage layers.

from .domain import (
    DashboardStats,
    Image,
    ImageInput,
    RankedMatch,
    Record,
    SearchCandidate,
    VectorReference,
)

__all__ = [
    "DashboardStats",
    "Image",
    "ImageInput",
    "RankedMatch",
    "Record",
    "SearchCandidate",
    "VectorReference",
]
