# Path: api/schemas.py
# Purpose: Define request and response payloads for the HTTP surface.
# Layer: api.
# Details: Pydantic models built from core dataclasses; the core never imports this module.

from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from core.models.domain import DashboardStats, Image, RankedMatch, Record


class ImageOut(BaseModel):
    id: int
    record_id: int
    filename: str
    path: str
    vector_id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, image: Image) -> "ImageOut":
        return cls(
            id=image.id,
            record_id=image.record_id,
            filename=image.filename,
            path=image.path,
            vector_id=image.vector_id,
            created_at=image.created_at,
        )


class RecordOut(BaseModel):
    id: int
    name: str
    description: str = ""
    images: List[ImageOut] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, record: Record) -> "RecordOut":
        return cls(
            id=record.id,
            name=record.name,
            description=record.description,
            images=[ImageOut.from_domain(image) for image in record.images],
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class RecordPage(BaseModel):
    data: List[RecordOut]
    total: int
    page: int
    limit: int


class RecordUpdate(BaseModel):
    """Fields left empty keep their current value."""

    name: Optional[str] = None
    description: Optional[str] = None


class FailedImage(BaseModel):
    index: int
    filename: str
    error: str


class RecordCreated(BaseModel):
    record: RecordOut
    failed: List[FailedImage] = Field(default_factory=list)


class MatchOut(BaseModel):
    record_id: int
    record_name: str
    description: str
    image_id: int
    filename: str
    distance: float

    @classmethod
    def from_domain(cls, match: RankedMatch) -> "MatchOut":
        return cls(
            record_id=match.record_id,
            record_name=match.record_name,
            description=match.description,
            image_id=match.image_id,
            filename=match.filename,
            distance=match.distance,
        )


class SearchResponse(BaseModel):
    results: List[MatchOut]
    count: int

    @classmethod
    def from_matches(cls, matches: List[RankedMatch]) -> "SearchResponse":
        return cls(results=[MatchOut.from_domain(match) for match in matches], count=len(matches))


class AdvancedFilters(BaseModel):
    record_name: Optional[str] = None
    min_distance: Optional[float] = None
    max_distance: Optional[float] = None


class AdvancedSearchResponse(SearchResponse):
    query: Optional[str] = None
    filters: AdvancedFilters = Field(default_factory=AdvancedFilters)


class Base64SearchRequest(BaseModel):
    image: str = Field(..., description="Base64 image payload, optionally as a data URL.")
    filename: Optional[str] = None
    top_k: Optional[int] = None


class VectorLookupResponse(BaseModel):
    image: ImageOut
    record: RecordOut


class MessageResponse(BaseModel):
    message: str


class StatsOut(BaseModel):
    total_records: int
    total_images: int
    today_records: int
    today_images: int
    total_vectors: Optional[int] = None

    @classmethod
    def from_domain(cls, stats: DashboardStats) -> "StatsOut":
        return cls(
            total_records=stats.total_records,
            total_images=stats.total_images,
            today_records=stats.today_records,
            today_images=stats.today_images,
            total_vectors=stats.total_vectors,
        )


class StatsResponse(BaseModel):
    data: StatsOut


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    services: Dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    error: str
    step: Optional[str] = None
    retryable: bool = False
