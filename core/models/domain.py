# Path: core/models/domain.py
# Purpose: Define domain models shared across ingestion, search, and storage workflows.
# Layer: core/models.
# Details: Lightweight dataclasses simplify serialization between API, scripts, and core services.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import numpy as np


@dataclass
class Image:
    """Stored image row; ``vector_id`` is the only reference into the vector index."""

    id: int
    record_id: int
    filename: str
    path: str
    vector_id: str
    created_at: Optional[datetime] = None


@dataclass
class Record:
    """Named record owning images ordered by creation."""

    id: int
    name: str
    description: str = ""
    images: List[Image] = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ImageInput:
    """One uploaded image waiting for ingestion."""

    data: bytes
    filename: str
    format: Optional[str] = None


@dataclass
class VectorReference:
    """Transient pairing of a generated vector id and its embedding."""

    vector_id: str
    vector: np.ndarray


@dataclass(frozen=True)
class SearchCandidate:
    """Point-in-time (vector_id, distance) pair returned by the index."""

    vector_id: str
    distance: float


@dataclass
class RankedMatch:
    """Search result resolved through the metadata store."""

    record_id: int
    record_name: str
    description: str
    image_id: int
    filename: str
    distance: float
    vector_id: Optional[str] = None


@dataclass
class DashboardStats:
    """Aggregate counts for the dashboard view."""

    total_records: int
    total_images: int
    today_records: int
    today_images: int
    total_vectors: Optional[int] = None
