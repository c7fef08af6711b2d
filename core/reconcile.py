# Path: core/reconcile.py
# Purpose: Compare the metadata store and the vector index and clean up the vectors nobody references.
# Layer: core.
# Details: Operator-driven cleanup for orphans logged by ingestion and deletion.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from core.errors import IndexDeleteError
from core.logging import log_with_context
from core.metadata.sqlite_store import MetadataStore
from core.vector_store.base import VectorStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Differences between the two stores at one point in time.

    ``pending_vectors`` are unreferenced vectors younger than the grace
    period; an ingestion may still be about to write their rows.
    """

    orphan_vectors: List[str] = field(default_factory=list)
    dangling_images: List[str] = field(default_factory=list)
    pending_vectors: List[str] = field(default_factory=list)
    purged: List[str] = field(default_factory=list)
    purge_failures: List[str] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return not self.orphan_vectors and not self.dangling_images


class Reconciler:
    """Find vectors without image rows and image rows without vectors."""

    def __init__(self, vector_store: VectorStore, metadata: MetadataStore, grace_seconds: float = 300.0) -> None:
        if grace_seconds < 0:
            raise ValueError("grace_seconds must not be negative")
        self.vector_store = vector_store
        self.metadata = metadata
        self.grace_seconds = grace_seconds

    def _is_pending(self, vector_id: str, now: float) -> bool:
        inserted_at = self.vector_store.inserted_at(vector_id)
        return inserted_at is not None and now - inserted_at < self.grace_seconds

    def scan(self, now: Optional[float] = None) -> ReconcileReport:
        now = time.time() if now is None else now
        indexed = set(self.vector_store.ids())
        referenced = self.metadata.vector_ids()
        report = ReconcileReport(dangling_images=sorted(referenced - indexed))
        for vector_id in sorted(indexed - referenced):
            if self._is_pending(vector_id, now):
                report.pending_vectors.append(vector_id)
            else:
                report.orphan_vectors.append(vector_id)
        return report

    def run(self, purge: bool = False, now: Optional[float] = None) -> ReconcileReport:
        """Scan both stores and, with ``purge``, delete orphan vectors.

        Only vectors older than the grace period are purged. Dangling image
        rows are only reported; they need a re-ingest of the stored file,
        which is a decision for the operator.
        """

        report = self.scan(now)
        for vector_id in report.dangling_images:
            log_with_context(logger, logging.WARNING, "Image row without vector", event="dangling_image", vector_id=vector_id)
        if not purge:
            return report

        referenced = self.metadata.vector_ids()
        for vector_id in report.orphan_vectors:
            # A row written after the scan keeps its vector.
            if vector_id in referenced:
                continue
            try:
                self.vector_store.delete(vector_id)
            except Exception as exc:  # noqa: BLE001
                error = IndexDeleteError(f"failed to purge orphan vector: {exc}", step="purge", vector_id=vector_id)
                error.__cause__ = exc
                report.purge_failures.append(vector_id)
                log_with_context(
                    logger, logging.ERROR, "Failed to purge orphan vector", event="purge_failed", reason=str(exc), **error.context()
                )
            else:
                report.purged.append(vector_id)
        logger.info("Purged %d orphan vector(s)", len(report.purged))
        return report
