# Path: api/deps.py
# Purpose: FastAPI dependencies resolving the service container and shared request parsing.
# Layer: api.
# Details: Services live on app.state; handlers never build collaborators themselves.

from __future__ import annotations

from fastapi import Request, UploadFile

from core.errors import InvalidImageError
from core.models.domain import ImageInput
from core.services import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def read_upload(upload: UploadFile, services: ServiceContainer) -> ImageInput:
    """Read an uploaded file and validate it against the upload settings."""

    filename = upload.filename or ""
    data = upload.file.read()
    if not filename:
        raise InvalidImageError("image is required", step="validate")
    services.files.validate(filename, data)
    return ImageInput(data=data, filename=filename)
