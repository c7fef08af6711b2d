# Path: core/vector_store/base.py
# Purpose: Define the VectorStore interface for inserting, deleting, and searching embeddings.
# Layer: core/vector_store.
# Details: Dimension and metric are fixed configuration validated once at startup, never per call.

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

import numpy as np

from core.models.domain import SearchCandidate


class VectorStore(ABC):
    """Abstract base class for pluggable vector store backends.

    Ids are chosen by the caller and are opaque strings. ``search`` returns
    candidates in ascending distance order; callers rely on that order and
    never re-sort it.
    """

    name: str
    dim: int
    metric: str

    def validate_configuration(self, dim: int, metric: str) -> None:
        """Fail fast when the backend does not match the configured dimension and metric."""

        if self.dim != dim:
            raise ValueError(f"Vector store '{self.name}' has dimension {self.dim}, configuration expects {dim}.")
        if self.metric != metric:
            raise ValueError(f"Vector store '{self.name}' ranks by {self.metric}, configuration expects {metric}.")

    @abstractmethod
    def insert(self, vector_id: str, vector: np.ndarray, timeout: Optional[float] = None) -> None:
        """Insert a single vector under the given id."""

    @abstractmethod
    def delete(self, vector_id: str, timeout: Optional[float] = None) -> None:
        """Delete the vector with the given id; deleting a missing id is a no-op."""

    @abstractmethod
    def search(self, query: np.ndarray, k: int, timeout: Optional[float] = None) -> List[SearchCandidate]:
        """Return up to k nearest neighbours as ascending (vector_id, distance) candidates."""

    @abstractmethod
    def get_vector(self, vector_id: str) -> Optional[np.ndarray]:
        """Return the stored embedding for an id if present."""

    @abstractmethod
    def contains(self, vector_id: str) -> bool:
        """Return True when a vector with the given id exists."""

    @abstractmethod
    def ids(self) -> List[str]:
        """Return every stored vector id."""

    @abstractmethod
    def count(self) -> int:
        """Return total number of stored vectors."""

    def inserted_at(self, vector_id: str) -> Optional[float]:
        """Return the epoch time the vector was inserted, or None when the backend does not track it."""

        return None

    def ping(self) -> None:
        """Raise when the backend is unreachable; in-process backends are always reachable."""

    @abstractmethod
    def save(self, path: str) -> None:
        """Persist the index to disk."""

    @abstractmethod
    def load(self, path: str) -> None:
        """Load a serialized index from disk."""

    def close(self) -> None:
        """Release backend resources."""
