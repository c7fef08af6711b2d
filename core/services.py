# Path: core/services.py
# Purpose: Construct the collaborators and orchestrators once and tear them down explicitly.
# Layer: core.
# Details: Every orchestrator receives its dependencies at construction; there are no module-level singletons.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import AppSettings
from core.embedders import Embedder, make_embedder
from core.files.storage import FileStorage
from core.ingestion.batch import BatchCoordinator
from core.ingestion.orchestrator import IngestionOrchestrator
from core.metadata.sqlite_store import MetadataStore
from core.monitoring import Monitor
from core.reconcile import Reconciler
from core.search.pipeline import SearchPipeline
from core.vector_store import VectorStore, make_vector_store

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Wired services owned by one process entry point."""

    settings: AppSettings
    embedder: Embedder
    vector_store: VectorStore
    metadata: MetadataStore
    files: FileStorage
    ingestion: IngestionOrchestrator
    batch: BatchCoordinator
    search: SearchPipeline
    monitor: Monitor
    reconciler: Reconciler

    def close(self) -> None:
        """Release collaborator resources; vector writes are already durable when they return."""

        try:
            self.embedder.close()
        finally:
            self.vector_store.close()


def build_services(
    settings: Optional[AppSettings] = None,
    embedder: Optional[Embedder] = None,
    vector_store: Optional[VectorStore] = None,
) -> ServiceContainer:
    """Build the service graph from settings; ``embedder`` and ``vector_store`` override the configured ones."""

    settings = settings or AppSettings.from_env()
    store_settings = settings.vector_store

    if vector_store is None:
        path = str(store_settings.index_path) if store_settings.persist else None
        vector_store = make_vector_store(
            store_settings.name, dim=store_settings.dim, metric=store_settings.metric, path=path
        )
        if path is not None:
            logger.info("Opened vector index at %s with %d vector(s)", path, vector_store.count())
    else:
        vector_store.validate_configuration(store_settings.dim, store_settings.metric)
    embedder = embedder or make_embedder(settings.embedder, dim=store_settings.dim)

    metadata = MetadataStore(settings.database_path)
    files = FileStorage(
        settings.upload.directory,
        allowed_extensions=settings.upload.allowed_extensions,
        max_size_bytes=settings.upload.max_size_mb * 1024 * 1024,
    )

    ingestion_settings = settings.ingestion
    ingestion = IngestionOrchestrator(
        embedder,
        vector_store,
        metadata,
        files=files,
        call_timeout=ingestion_settings.call_timeout_seconds,
        compensation_timeout=ingestion_settings.compensation_timeout_seconds,
    )
    return ServiceContainer(
        settings=settings,
        embedder=embedder,
        vector_store=vector_store,
        metadata=metadata,
        files=files,
        ingestion=ingestion,
        batch=BatchCoordinator(ingestion, max_concurrency=ingestion_settings.max_concurrency),
        search=SearchPipeline(embedder, vector_store, metadata, call_timeout=ingestion_settings.call_timeout_seconds),
        monitor=Monitor(metadata, vector_store, embedder),
        reconciler=Reconciler(vector_store, metadata, grace_seconds=ingestion_settings.orphan_grace_seconds),
    )
