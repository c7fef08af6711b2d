# Path: core/embedders/base.py
# Purpose: Define the Embedder interface turning raw image bytes into fixed-length vectors.
# Layer: core/embedders.
# Details: Implementations raise EmbeddingError flagged retryable or not; the core never retries on its own.

from __future__ import annotations

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

_EXTENSION_FORMATS = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".webp": "webp",
}


def detect_image_format(data: bytes, filename: Optional[str] = None) -> str:
    """Infer the image format from the filename extension, then from the bytes, defaulting to jpeg."""

    if filename:
        fmt = _EXTENSION_FORMATS.get(Path(filename).suffix.lower())
        if fmt:
            return fmt
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format:
                return img.format.lower()
    except (UnidentifiedImageError, OSError):
        pass
    return "jpeg"


class Embedder(ABC):
    """Abstract base class for image embedders used by ingestion and search."""

    name: str
    dim: int

    @abstractmethod
    def embed(self, data: bytes, format: Optional[str] = None, timeout: Optional[float] = None) -> np.ndarray:
        """Return an embedding for the given image bytes."""

    def is_configured(self) -> bool:
        """Return True when the embedder has everything it needs to serve requests."""

        return True

    def close(self) -> None:
        """Release client resources."""

    @staticmethod
    def _normalize(vector: np.ndarray) -> np.ndarray:
        """Normalize embedding vectors to unit length to simplify similarity comparisons."""

        norm = np.linalg.norm(vector)
        if norm == 0:
            return vector.astype(np.float32)
        return (vector / norm).astype(np.float32)
