# Path: core/ingestion/__init__.py
# Purpose: Package initializer for ingestion orchestration.
# Layer: core/ingestion.
# Details: Exposes the single-image orchestrator and the bounded batch coordinator.

from .orchestrator import IngestionOrchestrator, IngestionSaga, IngestionState
from .batch import BatchCoordinator, BatchResult, RecordWithImages

__all__ = [
    "BatchCoordinator",
    "BatchResult",
    "IngestionOrchestrator",
    "IngestionSaga",
    "IngestionState",
    "RecordWithImages",
]
