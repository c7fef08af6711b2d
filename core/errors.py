# Path: core/errors.py
# Purpose: Define the error taxonomy shared by ingestion, search, and storage collaborators.
# Layer: core.
# Details: Errors carry the failing step and the identifiers needed to diagnose cross-store divergence.

from __future__ import annotations

from typing import Dict, List, Optional, Tuple


class ImageRecordError(Exception):
    """Base class for every error raised by the core layer.

    Attributes mirror the context a reader needs when the metadata store and
    the vector index disagree: which step failed and which ids were involved.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        step: Optional[str] = None,
        vector_id: Optional[str] = None,
        record_id: Optional[int] = None,
        image_id: Optional[int] = None,
        retryable: Optional[bool] = None,
        timed_out: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.step = step
        self.vector_id = vector_id
        self.record_id = record_id
        self.image_id = image_id
        self.timed_out = timed_out
        self.compensation_error: Optional["CompensationFailedError"] = None
        if retryable is not None:
            self.retryable = retryable
        elif timed_out:
            self.retryable = True

    def context(self) -> Dict[str, object]:
        """Return the non-empty identifying fields for structured logging."""

        fields = {
            "error": type(self).__name__,
            "step": self.step,
            "vector_id": self.vector_id,
            "record_id": self.record_id,
            "image_id": self.image_id,
            "retryable": self.retryable,
            "timed_out": self.timed_out,
        }
        return {key: value for key, value in fields.items() if value is not None}

    def __str__(self) -> str:
        details = ", ".join(
            f"{key}={value}" for key, value in self.context().items() if key in {"step", "vector_id", "record_id", "image_id"}
        )
        return f"{self.message} ({details})" if details else self.message


class EmbeddingError(ImageRecordError):
    """Embedding provider unreachable, rejected the input, or returned an unusable vector."""


class DimensionMismatchError(EmbeddingError):
    """Embedding length differs from the configured index dimension."""

    retryable = False

    def __init__(self, expected: int, actual: int, **kwargs) -> None:
        kwargs.setdefault("step", "embed")
        super().__init__(f"embedding dimension must be {expected}, got {actual}", **kwargs)
        self.expected = expected
        self.actual = actual


class IndexWriteError(ImageRecordError):
    """Vector index rejected an insert."""


class IndexSearchError(ImageRecordError):
    """Vector index failed to answer a nearest-neighbour query."""


class IndexDeleteError(ImageRecordError):
    """Vector index failed to delete a vector."""


class MetadataWriteError(ImageRecordError):
    """Metadata store failed to persist a change."""


class MetadataReadError(ImageRecordError):
    """Metadata store failed to read, including lookups that found nothing."""


class NotFoundError(MetadataReadError):
    """Requested entity does not exist in the metadata store."""


class RecordNotFoundError(NotFoundError):
    """Record id has no row."""

    def __init__(self, record_id: int, **kwargs) -> None:
        kwargs.setdefault("step", "lookup_record")
        super().__init__("record not found", record_id=record_id, **kwargs)


class ImageNotFoundError(NotFoundError):
    """Image id or vector id has no row."""

    def __init__(self, image_id: Optional[int] = None, vector_id: Optional[str] = None, **kwargs) -> None:
        kwargs.setdefault("step", "lookup_image")
        super().__init__("image not found", image_id=image_id, vector_id=vector_id, **kwargs)


class CompensationFailedError(ImageRecordError):
    """A compensating action failed; recorded for reconciliation, never returned to the caller."""


class DeadlineExceededError(ImageRecordError):
    """The caller deadline expired before the operation could finish."""

    retryable = True

    def __init__(self, message: str = "deadline exceeded", **kwargs) -> None:
        kwargs.setdefault("timed_out", True)
        super().__init__(message, **kwargs)


class InvalidRequestError(ImageRecordError):
    """Caller input failed validation."""


class InvalidImageError(InvalidRequestError):
    """Uploaded payload is not an acceptable image."""


class BatchIngestError(ImageRecordError):
    """Aggregate error listing which batch indices failed and why."""

    def __init__(self, failures: List[Tuple[int, ImageRecordError]]) -> None:
        ordered = sorted(failures, key=lambda item: item[0])
        summary = "; ".join(f"[{index}] {error}" for index, error in ordered)
        super().__init__(f"{len(ordered)} batch item(s) failed: {summary}", step="batch")
        self.failures = ordered

    @property
    def failed_indices(self) -> List[int]:
        """Return the failed input indices in ascending order."""

        return [index for index, _ in self.failures]

    def error_for(self, index: int) -> Optional[ImageRecordError]:
        """Return the error recorded for a given input index, if any."""

        for failed_index, error in self.failures:
            if failed_index == index:
                return error
        return None


__all__ = [
    "BatchIngestError",
    "CompensationFailedError",
    "DeadlineExceededError",
    "DimensionMismatchError",
    "EmbeddingError",
    "ImageNotFoundError",
    "ImageRecordError",
    "IndexDeleteError",
    "IndexSearchError",
    "IndexWriteError",
    "InvalidImageError",
    "InvalidRequestError",
    "MetadataReadError",
    "MetadataWriteError",
    "NotFoundError",
    "RecordNotFoundError",
]
