# Path: core/embedders/pixel_embedder.py
# Purpose: Provide an offline embedder derived from downsampled pixel values.
# Layer: core/embedders.
# Details: Deterministic numpy projection used for local runs and demos without a remote provider.

from __future__ import annotations

import io
from typing import Optional

import numpy as np
from PIL import Image, UnidentifiedImageError

from core.errors import EmbeddingError
from .base import Embedder


class PixelStatsEmbedder(Embedder):
    """Embeds an image as its mean-centred RGB thumbnail, tiled to ``dim`` and L2-normalised.

    Identical bytes always give identical vectors and similar-looking images land
    close together, which is enough for local runs without a remote provider.
    """

    def __init__(self, dim: int = 1024, thumbnail: int = 16) -> None:
        self.name = "pixel"
        self.dim = dim
        self.thumbnail = thumbnail

    def embed(self, data: bytes, format: Optional[str] = None, timeout: Optional[float] = None) -> np.ndarray:
        """Generate a deterministic image embedding from a downsampled RGB thumbnail."""

        try:
            with Image.open(io.BytesIO(data)) as img:
                resized = img.convert("RGB").resize((self.thumbnail, self.thumbnail))
                vector = np.asarray(resized, dtype=np.float32).flatten() / 255.0
        except (UnidentifiedImageError, OSError) as exc:
            raise EmbeddingError(f"cannot decode image: {exc}", step="embed", retryable=False) from exc

        centered = vector - vector.mean()
        padded = np.pad(centered, (0, max(0, self.dim - centered.size)), mode="wrap")
        return self._normalize(padded[: self.dim])
