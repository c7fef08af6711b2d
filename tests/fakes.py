"""
Deterministic test doubles: an embedder driven by payload bytes and stores with switchable failures.
"""

import threading
import time
import zlib
from typing import Dict, Optional

import numpy as np

from core.embedders.base import Embedder
from core.errors import MetadataWriteError
from core.metadata.sqlite_store import MetadataStore
from core.models.domain import ImageInput
from core.vector_store.numpy_store import NumpyVectorStore

DIM = 8


def unit(index: int, dim: int = DIM) -> np.ndarray:
    vector = np.zeros(dim, dtype=np.float32)
    vector[index] = 1.0
    return vector


def image_input(name: str, data: Optional[bytes] = None) -> ImageInput:
    return ImageInput(data=data if data is not None else name.encode(), filename=name)


class FakeEmbedder(Embedder):
    """Maps payload bytes to fixed vectors; unknown payloads get a stable pseudo-random vector."""

    name = "fake"

    def __init__(self, dim: int = DIM) -> None:
        self.dim = dim
        self.vectors: Dict[bytes, np.ndarray] = {}
        self.failures: Dict[bytes, Exception] = {}
        self.delay = 0.0
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def embed(self, data, format=None, timeout=None):
        with self._lock:
            self.calls += 1
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            if data in self.failures:
                raise self.failures[data]
            if data in self.vectors:
                return self.vectors[data]
            rng = np.random.default_rng(zlib.crc32(data))
            return rng.random(self.dim).astype(np.float32)
        finally:
            with self._lock:
                self.in_flight -= 1


class FaultyVectorStore(NumpyVectorStore):
    """NumpyVectorStore with switchable failures on each operation."""

    def __init__(self, dim: int = DIM) -> None:
        super().__init__(dim)
        self.fail_insert = False
        self.fail_delete = False
        self.fail_search = False
        self.insert_delay = 0.0
        self.delete_timeouts = []

    def insert(self, vector_id, vector, timeout=None):
        if self.fail_insert:
            raise ConnectionError("index unavailable")
        if self.insert_delay:
            time.sleep(self.insert_delay)
        super().insert(vector_id, vector, timeout=timeout)

    def delete(self, vector_id, timeout=None):
        self.delete_timeouts.append(timeout)
        if self.fail_delete:
            raise ConnectionError("index unavailable")
        super().delete(vector_id, timeout=timeout)

    def search(self, query, k, timeout=None):
        if self.fail_search:
            raise ConnectionError("index unavailable")
        return super().search(query, k, timeout=timeout)


class FaultyMetadataStore(MetadataStore):
    """MetadataStore whose image inserts can be made to fail."""

    fail_add_image = False

    def add_image(self, record_id, filename, path, vector_id):
        if self.fail_add_image:
            raise MetadataWriteError("database is locked", step="add_image", record_id=record_id, vector_id=vector_id)
        return super().add_image(record_id, filename, path, vector_id)
