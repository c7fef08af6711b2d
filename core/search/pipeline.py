# Path: core/search/pipeline.py
# Purpose: Orchestrate search workflow by combining the embedder, the vector store, and metadata resolution.
# Layer: core/search.
# Details: Trusts the index ordering; drops candidates without a metadata row and those rejected by filters.

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np

from core.deadline import Deadline
from core.embedders.base import Embedder, detect_image_format
from core.errors import (
    DimensionMismatchError,
    EmbeddingError,
    ImageNotFoundError,
    IndexSearchError,
    InvalidRequestError,
)
from core.metadata.sqlite_store import MetadataStore
from core.models.domain import Image, RankedMatch, Record, SearchCandidate
from core.vector_store.base import VectorStore
from .filters import ExcludeImageFilter, SearchFilters

logger = logging.getLogger(__name__)


class SearchPipeline:
    """High-level service bridging API/script layers with the embedder, vector store, and metadata store."""

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        metadata: MetadataStore,
        call_timeout: float = 30.0,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.metadata = metadata
        self.call_timeout = call_timeout

    def search(
        self,
        data: bytes,
        top_k: int = 10,
        filters: Optional[SearchFilters] = None,
        format: Optional[str] = None,
        filename: Optional[str] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[RankedMatch]:
        """
        Embed the query image and return resolved matches.

        External calls:
        - core/embedders/base.py::Embedder.embed - computes the query embedding.
        - core/vector_store/base.py::VectorStore.search - retrieves nearest neighbors from the index.
        - core/metadata/sqlite_store.py::MetadataStore.resolve_vector_ids - joins candidates to rows.
        """

        deadline = deadline or Deadline.never()
        if not data:
            raise InvalidRequestError("query image is empty", step="embed")
        deadline.check("embed")
        vector = self._embed_query(data, format or detect_image_format(data, filename), deadline)
        return self.search_by_vector(vector, top_k, filters=filters, deadline=deadline)

    def search_by_vector(
        self,
        vector: np.ndarray,
        top_k: int = 10,
        filters: Optional[SearchFilters] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[RankedMatch]:
        """Search with an embedding that is already computed."""

        deadline = deadline or Deadline.never()
        if top_k < 1:
            raise InvalidRequestError("top_k must be at least 1", step="index_search")
        query = np.asarray(vector, dtype=np.float32).reshape(-1)
        if query.shape[0] != self.vector_store.dim:
            raise DimensionMismatchError(self.vector_store.dim, int(query.shape[0]), step="index_search")

        deadline.check("index_search")
        candidates = self._query_index(query, top_k, deadline)
        deadline.check("resolve")
        matches = self._resolve(candidates)
        if filters:
            matches = filters.apply(matches)
        return matches[:top_k]

    def find_similar(
        self,
        image_id: int,
        top_k: int = 10,
        exclude_self: bool = False,
        filters: Optional[SearchFilters] = None,
        deadline: Optional[Deadline] = None,
    ) -> List[RankedMatch]:
        """Search with the stored embedding of an existing image.

        With ``exclude_self`` the index is asked for one extra candidate so the
        source image can be dropped without shrinking the result.
        """

        image = self.metadata.get_image(image_id)
        vector = self.vector_store.get_vector(image.vector_id)
        if vector is None:
            raise IndexSearchError(
                "stored vector is missing from the index",
                step="lookup_vector",
                image_id=image.id,
                vector_id=image.vector_id,
                record_id=image.record_id,
            )
        filters = filters or SearchFilters()
        if not exclude_self:
            return self.search_by_vector(vector, top_k, filters=filters, deadline=deadline)
        matches = self.search_by_vector(vector, top_k + 1, filters=filters.add(ExcludeImageFilter(image.id)), deadline=deadline)
        return matches[:top_k]

    def resolve_vector_id(self, vector_id: str) -> Tuple[Image, Record]:
        """Return the image row and owning record for a vector id."""

        resolved = self.metadata.resolve_vector_ids([vector_id])
        if vector_id not in resolved:
            raise ImageNotFoundError(vector_id=vector_id, step="resolve")
        return resolved[vector_id]

    def _embed_query(self, data: bytes, format: str, deadline: Deadline) -> np.ndarray:
        try:
            raw = self.embedder.embed(data, format=format, timeout=deadline.timeout_for(self.call_timeout))
        except EmbeddingError:
            raise
        except TimeoutError as exc:
            raise EmbeddingError("embedding request timed out", step="embed", timed_out=True) from exc
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingError(f"embedding failed: {exc}", step="embed", retryable=False) from exc
        return np.asarray(raw, dtype=np.float32).reshape(-1)

    def _query_index(self, query: np.ndarray, top_k: int, deadline: Deadline) -> List[SearchCandidate]:
        try:
            raw = self.vector_store.search(query, k=top_k, timeout=deadline.timeout_for(self.call_timeout))
        except Exception as exc:  # noqa: BLE001
            raise IndexSearchError(
                f"vector search failed: {exc}", step="index_search", timed_out=isinstance(exc, TimeoutError)
            ) from exc
        return list(raw)[:top_k]

    def _resolve(self, candidates: List[SearchCandidate]) -> List[RankedMatch]:
        if not candidates:
            return []
        resolved = self.metadata.resolve_vector_ids([candidate.vector_id for candidate in candidates])
        matches: List[RankedMatch] = []
        dropped = 0
        for candidate in candidates:
            pair = resolved.get(candidate.vector_id)
            if pair is None:
                dropped += 1
                continue
            image, record = pair
            matches.append(self._to_match(candidate, image, record))
        if dropped:
            logger.debug("Dropped %d candidate(s) without metadata rows", dropped)
        return matches

    @staticmethod
    def _to_match(candidate: SearchCandidate, image: Image, record: Record) -> RankedMatch:
        return RankedMatch(
            record_id=record.id,
            record_name=record.name,
            description=record.description,
            image_id=image.id,
            filename=image.filename,
            distance=float(candidate.distance),
            vector_id=candidate.vector_id,
        )
