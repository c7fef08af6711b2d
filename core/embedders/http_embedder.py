# Path: core/embedders/http_embedder.py
# Purpose: Call a remote multimodal embedding API for image embeddings.
# Layer: core/embedders.
# Details: Sends base64 image payloads over httpx and classifies failures as retryable or not.

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx
import numpy as np

from core.errors import EmbeddingError
from .base import Embedder, detect_image_format

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class HttpEmbedder(Embedder):
    """Embedding client for an ``/embeddings/multimodal`` style endpoint.

    Request body::

        {"model": ..., "input": {"images": [{"data": <base64>, "format": "png"}]}}

    The first ``data[].embedding`` of the response is the vector.
    """

    def __init__(
        self,
        url: str,
        api_key: Optional[str],
        model: str,
        dim: int,
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.name = "http"
        self.url = url
        self.api_key = api_key
        self.model = model
        self.dim = dim
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)
        self._owns_client = client is None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def embed(self, data: bytes, format: Optional[str] = None, timeout: Optional[float] = None) -> np.ndarray:
        if not self.api_key:
            raise EmbeddingError("embedding api key is not configured", step="embed", retryable=False)
        if not data:
            raise EmbeddingError("image payload is empty", step="embed", retryable=False)

        payload = {
            "model": self.model,
            "input": {
                "images": [
                    {
                        "data": base64.b64encode(data).decode("ascii"),
                        "format": format or detect_image_format(data),
                    }
                ]
            },
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            request_timeout = self.timeout if timeout is None else timeout
            resp = self._client.post(self.url, json=payload, headers=headers, timeout=request_timeout)
        except httpx.TimeoutException as exc:
            raise EmbeddingError("embedding request timed out", step="embed", timed_out=True) from exc
        except httpx.TransportError as exc:
            raise EmbeddingError(f"embedding provider unreachable: {exc}", step="embed", retryable=True) from exc

        if resp.status_code != 200:
            retryable = resp.status_code in RETRYABLE_STATUS
            logger.warning("Embedding API returned %s (retryable=%s)", resp.status_code, retryable)
            raise EmbeddingError(
                f"embedding api error {resp.status_code}: {resp.text[:200]}", step="embed", retryable=retryable
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise EmbeddingError(
                f"embedding endpoint returned non-JSON response: {resp.text[:200]}", step="embed", retryable=False
            ) from exc

        items = body.get("data") if isinstance(body, dict) else None
        if isinstance(items, dict):
            items = [items]
        if not items or not items[0].get("embedding"):
            raise EmbeddingError("no embedding data in response", step="embed", retryable=False)

        return np.asarray(items[0]["embedding"], dtype=np.float32)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
