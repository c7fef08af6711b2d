# Path: core/ingestion/batch.py
# Purpose: Fan ingestion out over many images with a bounded worker pool and per-index results.
# Layer: core/ingestion.
# Details: Failures are isolated per input and aggregated into a BatchIngestError after the join.

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple

from core.deadline import Deadline
from core.errors import BatchIngestError, DeadlineExceededError, ImageRecordError, MetadataWriteError
from core.models.domain import Image, ImageInput, Record
from .orchestrator import IngestionOrchestrator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, Optional[ImageRecordError]], None]


@dataclass
class BatchResult:
    """Per-index outcome of a batch; ``images[i]`` is None exactly when input i failed."""

    images: List[Optional[Image]]
    error: Optional[BatchIngestError] = None

    @property
    def succeeded(self) -> List[Image]:
        return [image for image in self.images if image is not None]

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RecordWithImages:
    """A freshly created record plus the outcome of ingesting its first images."""

    record: Record
    batch: BatchResult
    failed: List[Tuple[int, str]] = field(default_factory=list)


class BatchCoordinator:
    """Structured parallel map of ``IngestionOrchestrator.ingest`` over a list of inputs."""

    def __init__(self, orchestrator: IngestionOrchestrator, max_concurrency: int = 4) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.orchestrator = orchestrator
        self.max_concurrency = max_concurrency

    def ingest_batch(
        self,
        inputs: Sequence[ImageInput],
        record_id: int,
        deadline: Optional[Deadline] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Ingest every input into ``record_id`` and wait for all of them.

        Each worker writes only its own slot of the result list. Units that
        have not started when the deadline passes are skipped with a
        DeadlineExceededError; units already running finish or compensate.
        """

        deadline = deadline or Deadline.never()
        results: List[Optional[Image]] = [None] * len(inputs)
        failures: List[Tuple[int, ImageRecordError]] = []
        failures_lock = threading.Lock()

        def run(index: int, image_input: ImageInput) -> None:
            error: Optional[ImageRecordError] = None
            try:
                if deadline.expired():
                    raise DeadlineExceededError(
                        "batch deadline passed before unit started", step="schedule", record_id=record_id
                    )
                results[index] = self.orchestrator.ingest(image_input, record_id, deadline=deadline)
            except ImageRecordError as exc:
                error = exc
            except Exception as exc:  # noqa: BLE001
                error = MetadataWriteError(f"unexpected ingestion failure: {exc}", step="ingest", record_id=record_id)
                error.__cause__ = exc
            if error is not None:
                logger.warning("Batch item %d (%s) failed: %s", index, image_input.filename, error)
                with failures_lock:
                    failures.append((index, error))
            if on_progress is not None:
                try:
                    on_progress(index, error)
                except Exception:  # noqa: BLE001
                    logger.exception("Progress callback failed for batch item %d", index)

        if inputs:
            workers = min(self.max_concurrency, len(inputs))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as executor:
                futures = [executor.submit(run, index, item) for index, item in enumerate(inputs)]
                wait(futures)
                for future in futures:
                    future.result()

        error = BatchIngestError(failures) if failures else None
        logger.info("Batch into record %s: %d/%d succeeded", record_id, len(inputs) - len(failures), len(inputs))
        return BatchResult(images=results, error=error)

    def create_record_with_images(
        self,
        name: str,
        description: str,
        inputs: Sequence[ImageInput],
        deadline: Optional[Deadline] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> RecordWithImages:
        """Create a record, then ingest the acceptable inputs into it.

        Inputs the file storage rejects are skipped up front; ingestion
        failures of the rest never undo the record itself.
        """

        metadata = self.orchestrator.metadata
        files = self.orchestrator.files
        accepted: List[ImageInput] = []
        positions: List[int] = []
        failed: List[Tuple[int, str]] = []
        for index, item in enumerate(inputs):
            if files is not None:
                try:
                    files.validate(item.filename, item.data)
                except ImageRecordError as exc:
                    failed.append((index, exc.message))
                    continue
            accepted.append(item)
            positions.append(index)

        record = metadata.create_record(name, description)
        batch = self.ingest_batch(accepted, record.id, deadline=deadline, on_progress=on_progress)
        if failed:
            logger.info("Skipped %d invalid file(s) for record %s", len(failed), record.id)
        if batch.error is not None:
            failed.extend((positions[index], str(error)) for index, error in batch.error.failures)
        record = metadata.get_record(record.id)
        return RecordWithImages(record=record, batch=batch, failed=sorted(failed))
