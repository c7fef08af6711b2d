# Path: api/routes/search.py
# Purpose: Similarity search endpoints.
# Layer: api/routes.
# Details: top_k is clamped by settings before it reaches the search pipeline.

from __future__ import annotations

import base64
import binascii
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from api.deps import get_services, read_upload
from api.schemas import (
    AdvancedFilters,
    AdvancedSearchResponse,
    Base64SearchRequest,
    ImageOut,
    MatchOut,
    RecordOut,
    SearchResponse,
    VectorLookupResponse,
)
from core.errors import InvalidImageError
from core.search.filters import SearchFilters
from core.services import ServiceContainer

router = APIRouter(prefix="/search", tags=["search"])


@router.post("", response_model=SearchResponse)
def search_by_upload(
    image: UploadFile = File(...),
    top_k: Optional[int] = None,
    services: ServiceContainer = Depends(get_services),
):
    query = read_upload(image, services)
    matches = services.search.search(query.data, services.settings.clamp_top_k(top_k), filename=query.filename)
    return SearchResponse.from_matches(matches)


@router.get("/similar/{image_id}", response_model=SearchResponse)
def find_similar(
    image_id: int,
    top_k: Optional[int] = None,
    exclude_self: bool = False,
    services: ServiceContainer = Depends(get_services),
):
    matches = services.search.find_similar(image_id, services.settings.clamp_top_k(top_k), exclude_self=exclude_self)
    return SearchResponse.from_matches(matches)


@router.post("/advanced", response_model=AdvancedSearchResponse)
def advanced_search(
    image: UploadFile = File(...),
    q: Optional[str] = None,
    record_name: Optional[str] = None,
    min_distance: Optional[float] = None,
    max_distance: Optional[float] = None,
    top_k: Optional[int] = None,
    services: ServiceContainer = Depends(get_services),
):
    query = read_upload(image, services)
    filters = SearchFilters.build(text=q, record_name=record_name, min_distance=min_distance, max_distance=max_distance)
    matches = services.search.search(
        query.data, services.settings.clamp_top_k(top_k), filters=filters, filename=query.filename
    )
    return AdvancedSearchResponse(
        results=[MatchOut.from_domain(match) for match in matches],
        count=len(matches),
        query=q,
        filters=AdvancedFilters(record_name=record_name, min_distance=min_distance, max_distance=max_distance),
    )


@router.post("/base64", response_model=SearchResponse)
def search_by_base64(payload: Base64SearchRequest, services: ServiceContainer = Depends(get_services)):
    encoded = payload.image
    if encoded.startswith("data:") and "," in encoded:
        encoded = encoded.split(",", 1)[1]
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("image is not valid base64", step="decode") from exc
    if not data:
        raise InvalidImageError("image payload is empty", step="decode")
    matches = services.search.search(data, services.settings.clamp_top_k(payload.top_k), filename=payload.filename)
    return SearchResponse.from_matches(matches)


@router.get("/by-vector/{vector_id}", response_model=VectorLookupResponse)
def get_by_vector_id(vector_id: str, services: ServiceContainer = Depends(get_services)):
    image, record = services.search.resolve_vector_id(vector_id)
    return VectorLookupResponse(image=ImageOut.from_domain(image), record=RecordOut.from_domain(record))
