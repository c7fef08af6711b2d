# Path: api/routes/records.py
# Purpose: Record and image management endpoints.
# Layer: api/routes.
# Details: Creation with images goes through the batch coordinator; deletes go through the ingestion orchestrator.

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import FileResponse

from api.deps import get_services, read_upload
from api.schemas import FailedImage, ImageOut, MessageResponse, RecordCreated, RecordOut, RecordPage, RecordUpdate
from core.errors import ImageNotFoundError, InvalidRequestError
from core.models.domain import ImageInput
from core.services import ServiceContainer

router = APIRouter(tags=["records"])


@router.post("/records", response_model=RecordCreated, status_code=201)
def create_record(
    name: str = Form(""),
    description: str = Form(""),
    images: List[UploadFile] = File(default=[]),
    services: ServiceContainer = Depends(get_services),
):
    """Create a record and ingest any uploaded images; per-image failures are reported, not raised."""

    if not name.strip():
        raise InvalidRequestError("name is required", step="create_record")
    inputs = [ImageInput(data=upload.file.read(), filename=upload.filename or "") for upload in images]
    outcome = services.batch.create_record_with_images(name, description, inputs)
    return RecordCreated(
        record=RecordOut.from_domain(outcome.record),
        failed=[FailedImage(index=index, filename=inputs[index].filename, error=message) for index, message in outcome.failed],
    )


@router.get("/records", response_model=RecordPage)
def list_records(page: int = 1, limit: int = 10, services: ServiceContainer = Depends(get_services)):
    page = max(1, page)
    limit = max(1, min(limit, 100))
    records, total = services.metadata.list_records(limit=limit, offset=(page - 1) * limit)
    return RecordPage(data=[RecordOut.from_domain(record) for record in records], total=total, page=page, limit=limit)


@router.get("/records/{record_id}", response_model=RecordOut)
def get_record(record_id: int, services: ServiceContainer = Depends(get_services)):
    return RecordOut.from_domain(services.metadata.get_record(record_id))


@router.put("/records/{record_id}", response_model=RecordOut)
def update_record(record_id: int, payload: RecordUpdate, services: ServiceContainer = Depends(get_services)):
    record = services.metadata.update_record(record_id, name=payload.name, description=payload.description)
    return RecordOut.from_domain(record)


@router.delete("/records/{record_id}", response_model=MessageResponse)
def delete_record(record_id: int, services: ServiceContainer = Depends(get_services)):
    services.ingestion.delete_record(record_id)
    return MessageResponse(message="record deleted successfully")


@router.post("/records/{record_id}/images", response_model=ImageOut, status_code=201)
def add_image(record_id: int, image: UploadFile = File(...), services: ServiceContainer = Depends(get_services)):
    image_input = read_upload(image, services)
    return ImageOut.from_domain(services.ingestion.ingest(image_input, record_id))


@router.delete("/images/{image_id}", response_model=MessageResponse)
def delete_image(image_id: int, services: ServiceContainer = Depends(get_services)):
    services.ingestion.delete_image(image_id)
    return MessageResponse(message="image deleted successfully")


@router.get("/images/{image_id}/preview")
def preview_image(image_id: int, services: ServiceContainer = Depends(get_services)):
    image = services.metadata.get_image(image_id)
    if not image.path or not services.files.exists(image.path):
        raise ImageNotFoundError(image_id=image_id, step="preview")
    return FileResponse(image.path, filename=image.filename)
