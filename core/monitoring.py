# Path: core/monitoring.py
# Purpose: Provide dashboard statistics and health probes over the injected stores.
# Layer: core.
# Details: Readiness reports each collaborator separately so a single failure is visible.

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, Optional

from core.embedders.base import Embedder
from core.errors import ImageRecordError
from core.metadata.sqlite_store import MetadataStore
from core.models.domain import DashboardStats
from core.vector_store.base import VectorStore

logger = logging.getLogger(__name__)


def start_of_day(now: Optional[datetime] = None) -> float:
    """Return the local midnight of ``now`` as a POSIX timestamp."""

    now = now or datetime.now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0).timestamp()


class Monitor:
    def __init__(self, metadata: MetadataStore, vector_store: VectorStore, embedder: Embedder) -> None:
        self.metadata = metadata
        self.vector_store = vector_store
        self.embedder = embedder

    def dashboard_stats(self, now: Optional[datetime] = None) -> DashboardStats:
        counts = self.metadata.counts(since=start_of_day(now))
        return DashboardStats(
            total_records=counts["records"],
            total_images=counts["images"],
            today_records=counts["records_since"],
            today_images=counts["images_since"],
            total_vectors=self.vector_store.count(),
        )

    @staticmethod
    def liveness() -> Dict[str, str]:
        return {"status": "alive"}

    def readiness(self) -> Dict[str, object]:
        """Probe every collaborator; ``ready`` is True only when all checks pass."""

        checks: Dict[str, str] = {}
        try:
            self.metadata.ping()
            checks["metadata"] = "ok"
        except ImageRecordError as exc:
            checks["metadata"] = f"error: {exc.message}"
        try:
            self.vector_store.ping()
            checks["vector_store"] = "ok"
        except Exception as exc:  # noqa: BLE001
            checks["vector_store"] = f"error: {exc}"
        checks["embedder"] = "ok" if self.embedder.is_configured() else "not configured"

        ready = all(value == "ok" for value in checks.values())
        if not ready:
            logger.warning("Readiness check failed: %s", checks)
        return {"ready": ready, "checks": checks}
