"""
Shared fixtures: deterministic embedder, fault-injecting stores, and wired services.
"""

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from config.settings import AppSettings, IngestionSettings, UploadSettings, VectorStoreSettings
from core.files.storage import FileStorage
from core.ingestion.batch import BatchCoordinator
from core.ingestion.orchestrator import IngestionOrchestrator
from core.search.pipeline import SearchPipeline
from core.services import build_services
from tests.fakes import DIM, FakeEmbedder, FaultyMetadataStore, FaultyVectorStore


@pytest.fixture
def embedder():
    return FakeEmbedder()


@pytest.fixture
def vector_store():
    return FaultyVectorStore()


@pytest.fixture
def metadata(tmp_path):
    return FaultyMetadataStore(tmp_path / "db" / "metadata.sqlite3")


@pytest.fixture
def files(tmp_path):
    return FileStorage(tmp_path / "uploads", max_size_bytes=1024 * 1024)


@pytest.fixture
def orchestrator(embedder, vector_store, metadata, files):
    return IngestionOrchestrator(embedder, vector_store, metadata, files=files, call_timeout=2.0, compensation_timeout=1.0)


@pytest.fixture
def batch(orchestrator):
    return BatchCoordinator(orchestrator, max_concurrency=3)


@pytest.fixture
def pipeline(embedder, vector_store, metadata):
    return SearchPipeline(embedder, vector_store, metadata, call_timeout=2.0)


@pytest.fixture
def record(metadata):
    return metadata.create_record("Record R", "first record")


@pytest.fixture
def settings(tmp_path):
    return AppSettings(
        database_path=tmp_path / "api" / "metadata.sqlite3",
        vector_store=VectorStoreSettings(dim=DIM, persist=False, index_path=tmp_path / "api" / "index"),
        ingestion=IngestionSettings(max_concurrency=2, call_timeout_seconds=2.0, compensation_timeout_seconds=1.0),
        upload=UploadSettings(directory=tmp_path / "api" / "uploads", max_size_mb=1),
    )


@pytest.fixture
def services(settings, embedder, vector_store):
    container = build_services(settings, embedder=embedder, vector_store=vector_store)
    yield container
    container.close()


@pytest.fixture
def client(services):
    """FastAPI test client over injected services."""
    return TestClient(create_app(services))
