# Path: core/ingestion/orchestrator.py
# Purpose: Turn one uploaded image into an Image row whose vector exists in the index, and delete it again.
# Layer: core/ingestion.
# Details: Ordered writes with a single compensating delete; no transaction spans the two stores.

from __future__ import annotations

import logging
import uuid
from enum import Enum
from typing import Dict, Optional, Set

import numpy as np

from core.deadline import Deadline
from core.embedders.base import Embedder, detect_image_format
from core.errors import (
    CompensationFailedError,
    DeadlineExceededError,
    DimensionMismatchError,
    EmbeddingError,
    ImageRecordError,
    IndexDeleteError,
    IndexWriteError,
    MetadataReadError,
    MetadataWriteError,
)
from core.files.storage import FileStorage
from core.logging import log_with_context
from core.metadata.sqlite_store import MetadataStore
from core.models.domain import Image, ImageInput, Record, VectorReference
from core.vector_store.base import VectorStore

logger = logging.getLogger(__name__)


class IngestionState(str, Enum):
    """Progress of one ingestion unit."""

    STARTED = "started"
    EMBEDDING_DONE = "embedding_done"
    VECTOR_WRITTEN = "vector_written"
    METADATA_WRITTEN = "metadata_written"
    ROLLED_BACK = "rolled_back"


_TRANSITIONS: Dict[IngestionState, Set[IngestionState]] = {
    IngestionState.STARTED: {IngestionState.EMBEDDING_DONE},
    IngestionState.EMBEDDING_DONE: {IngestionState.VECTOR_WRITTEN},
    IngestionState.VECTOR_WRITTEN: {IngestionState.METADATA_WRITTEN, IngestionState.ROLLED_BACK},
    IngestionState.METADATA_WRITTEN: set(),
    IngestionState.ROLLED_BACK: set(),
}


class IngestionSaga:
    """State of a single ingestion unit.

    Only VECTOR_WRITTEN has two exits: forward to METADATA_WRITTEN, or back
    through the compensating delete to ROLLED_BACK.
    """

    def __init__(self, record_id: int, filename: str) -> None:
        self.record_id = record_id
        self.filename = filename
        self.state = IngestionState.STARTED
        self.vector: Optional[VectorReference] = None
        self.stored_path: Optional[str] = None

    def advance(self, state: IngestionState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal ingestion transition {self.state.value} -> {state.value}")
        self.state = state

    @property
    def needs_compensation(self) -> bool:
        return self.state is IngestionState.VECTOR_WRITTEN


class IngestionOrchestrator:
    """Coordinate the embedder, the vector index, and the metadata store for one image at a time.

    Steps: embed, validate dimension, pick a vector id, insert the vector,
    insert the Image row. A failure after the vector insert triggers a
    compensating delete that runs on its own timeout, detached from the
    caller's deadline. A failed compensation is logged as an orphan and never
    replaces the primary error.
    """

    def __init__(
        self,
        embedder: Embedder,
        vector_store: VectorStore,
        metadata: MetadataStore,
        files: Optional[FileStorage] = None,
        call_timeout: float = 30.0,
        compensation_timeout: float = 5.0,
    ) -> None:
        self.embedder = embedder
        self.vector_store = vector_store
        self.metadata = metadata
        self.files = files
        self.call_timeout = call_timeout
        self.compensation_timeout = compensation_timeout

    @staticmethod
    def new_vector_id() -> str:
        return str(uuid.uuid4())

    # Ingestion
    def ingest(self, image: ImageInput, record_id: int, deadline: Optional[Deadline] = None) -> Image:
        """Ingest one image into an existing record and return the persisted Image."""

        deadline = deadline or Deadline.never()
        saga = IngestionSaga(record_id=record_id, filename=image.filename)

        deadline.check("lookup_record", record_id=record_id)
        self.metadata.require_record(record_id)
        if self.files is not None:
            self.files.validate(image.filename, image.data)

        deadline.check("embed", record_id=record_id)
        vector = self.embed(image.data, image.format or detect_image_format(image.data, image.filename), deadline)
        saga.vector = VectorReference(vector_id=self.new_vector_id(), vector=vector)
        saga.advance(IngestionState.EMBEDDING_DONE)

        deadline.check("index_insert", record_id=record_id)
        stored_filename, path = self._store_file(saga, image)
        try:
            self._insert_vector(saga, deadline)
        except ImageRecordError:
            self._discard_file(saga)
            raise
        saga.advance(IngestionState.VECTOR_WRITTEN)

        try:
            if deadline.expired():
                raise DeadlineExceededError(
                    "deadline exceeded after vector write",
                    step="add_image",
                    record_id=record_id,
                    vector_id=saga.vector.vector_id,
                )
            row = self._write_metadata(saga, stored_filename, path)
        except ImageRecordError as exc:
            self._roll_back(saga, exc)
            raise
        saga.advance(IngestionState.METADATA_WRITTEN)

        logger.info("Ingested image %s into record %s (vector %s)", row.id, record_id, row.vector_id)
        return row

    def embed(self, data: bytes, format: Optional[str] = None, deadline: Optional[Deadline] = None) -> np.ndarray:
        """Call the embedder and enforce the index dimension before anything is stored."""

        deadline = deadline or Deadline.never()
        try:
            raw = self.embedder.embed(data, format=format, timeout=deadline.timeout_for(self.call_timeout))
        except EmbeddingError:
            raise
        except TimeoutError as exc:
            raise EmbeddingError("embedding request timed out", step="embed", timed_out=True) from exc
        except Exception as exc:  # noqa: BLE001
            raise EmbeddingError(f"embedding failed: {exc}", step="embed", retryable=False) from exc

        vector = np.asarray(raw, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.vector_store.dim:
            raise DimensionMismatchError(self.vector_store.dim, int(vector.shape[0]))
        if not np.all(np.isfinite(vector)):
            raise EmbeddingError("embedding contains non-finite values", step="embed", retryable=False)
        return vector

    def _store_file(self, saga: IngestionSaga, image: ImageInput):
        if self.files is None:
            return image.filename, ""
        try:
            stored_filename, path = self.files.save(image.filename, image.data)
        except OSError as exc:
            raise MetadataWriteError(
                f"failed to store image file: {exc}", step="store_file", record_id=saga.record_id
            ) from exc
        saga.stored_path = path
        return stored_filename, path

    def _discard_file(self, saga: IngestionSaga) -> None:
        if self.files is not None and saga.stored_path:
            self.files.delete(saga.stored_path)
            saga.stored_path = None

    def _insert_vector(self, saga: IngestionSaga, deadline: Deadline) -> None:
        ref = saga.vector
        try:
            self.vector_store.insert(ref.vector_id, ref.vector, timeout=deadline.timeout_for(self.call_timeout))
        except Exception as exc:  # noqa: BLE001
            raise IndexWriteError(
                f"failed to insert vector: {exc}",
                step="index_insert",
                record_id=saga.record_id,
                vector_id=ref.vector_id,
                timed_out=isinstance(exc, TimeoutError),
            ) from exc

    def _write_metadata(self, saga: IngestionSaga, filename: str, path: str) -> Image:
        try:
            return self.metadata.add_image(saga.record_id, filename, path, saga.vector.vector_id)
        except (MetadataWriteError, MetadataReadError):
            raise
        except Exception as exc:  # noqa: BLE001
            raise MetadataWriteError(
                f"failed to add image: {exc}",
                step="add_image",
                record_id=saga.record_id,
                vector_id=saga.vector.vector_id,
            ) from exc

    def _roll_back(self, saga: IngestionSaga, primary: ImageRecordError) -> None:
        """Run the compensating delete for a unit stuck in VECTOR_WRITTEN."""

        if not saga.needs_compensation:
            return
        vector_id = saga.vector.vector_id
        try:
            self.vector_store.delete(vector_id, timeout=self.compensation_timeout)
        except Exception as exc:  # noqa: BLE001
            failure = CompensationFailedError(
                f"compensating delete failed: {exc}",
                step="compensate",
                record_id=saga.record_id,
                vector_id=vector_id,
            )
            failure.__cause__ = exc
            primary.compensation_error = failure
            log_with_context(
                logger,
                logging.ERROR,
                "Orphaned vector after failed compensation",
                event="orphan_vector",
                vector_id=vector_id,
                record_id=saga.record_id,
                step=primary.step,
                reason=str(exc),
                primary_error=type(primary).__name__,
            )
        else:
            saga.advance(IngestionState.ROLLED_BACK)
            log_with_context(
                logger,
                logging.WARNING,
                "Rolled back vector after metadata failure",
                event="compensated",
                vector_id=vector_id,
                record_id=saga.record_id,
                step=primary.step,
            )
        finally:
            self._discard_file(saga)

    # Deletion
    def delete_image(self, image_id: int) -> Image:
        """Delete an Image row, then its vector and file.

        The row delete is the user-visible contract; a failing vector delete is
        logged as an orphan and the call still succeeds.
        """

        image = self.metadata.delete_image(image_id)
        self._remove_vector(image.vector_id, image_id=image.id, record_id=image.record_id, step="delete_image")
        if self.files is not None and image.path:
            self.files.delete(image.path)
        logger.info("Deleted image %s (vector %s)", image.id, image.vector_id)
        return image

    def delete_record(self, record_id: int) -> Record:
        """Delete a record and its images, then remove their vectors best-effort."""

        record = self.metadata.delete_record(record_id)
        for image in record.images:
            self._remove_vector(image.vector_id, image_id=image.id, record_id=record_id, step="delete_record")
            if self.files is not None and image.path:
                self.files.delete(image.path)
        logger.info("Deleted record %s with %d image(s)", record_id, len(record.images))
        return record

    def _remove_vector(self, vector_id: str, image_id: int, record_id: int, step: str) -> bool:
        try:
            self.vector_store.delete(vector_id, timeout=self.compensation_timeout)
        except Exception as exc:  # noqa: BLE001
            error = IndexDeleteError(
                f"failed to delete vector: {exc}",
                step=step,
                vector_id=vector_id,
                image_id=image_id,
                record_id=record_id,
                timed_out=isinstance(exc, TimeoutError),
            )
            error.__cause__ = exc
            log_with_context(
                logger,
                logging.WARNING,
                "Orphaned vector after metadata delete",
                event="orphan_vector",
                reason=str(exc),
                **error.context(),
            )
            return False
        return True
