"""
Service wiring and lifecycle tests.
"""

from datetime import datetime

import pytest

from core.models.domain import ImageInput
from core.services import build_services
from tests.fakes import DIM, FakeEmbedder, FaultyVectorStore


class TestBuildServices:
    def test_index_survives_restart_without_close(self, settings):
        settings.vector_store.persist = True
        crashed = build_services(settings, embedder=FakeEmbedder())
        record = crashed.metadata.create_record("Saved")
        image = crashed.ingestion.ingest(ImageInput(data=b"a", filename="a.jpg"), record.id)

        restarted = build_services(settings, embedder=FakeEmbedder())
        try:
            assert restarted.vector_store.ids() == [image.vector_id]
            assert restarted.reconciler.scan().consistent
        finally:
            restarted.close()

    def test_two_processes_share_one_index(self, settings):
        settings.vector_store.persist = True
        server = build_services(settings, embedder=FakeEmbedder())
        script = build_services(settings, embedder=FakeEmbedder())
        record = script.metadata.create_record("Bulk")

        from_script = script.ingestion.ingest(ImageInput(data=b"a", filename="a.png"), record.id)
        from_server = server.ingestion.ingest(ImageInput(data=b"b", filename="b.png"), record.id)
        script.close()
        server.close()

        assert server.reconciler.scan().consistent
        fresh = build_services(settings, embedder=FakeEmbedder())
        try:
            assert sorted(fresh.vector_store.ids()) == sorted([from_script.vector_id, from_server.vector_id])
            report = fresh.reconciler.scan()
            assert report.dangling_images == []
            assert report.consistent
        finally:
            fresh.close()

    def test_injected_store_must_match_dimension(self, settings):
        with pytest.raises(ValueError):
            build_services(settings, embedder=FakeEmbedder(), vector_store=FaultyVectorStore(dim=DIM + 1))

    def test_dashboard_stats(self, services):
        record = services.metadata.create_record("Today")
        services.ingestion.ingest(ImageInput(data=b"a", filename="a.jpg"), record.id)

        stats = services.monitor.dashboard_stats(now=datetime.now())

        assert (stats.total_records, stats.total_images) == (1, 1)
        assert (stats.today_records, stats.today_images) == (1, 1)
        assert stats.total_vectors == 1

    def test_readiness_flags_unconfigured_embedder(self, services, embedder, monkeypatch):
        monkeypatch.setattr(embedder, "is_configured", lambda: False)

        report = services.monitor.readiness()

        assert report["ready"] is False
        assert report["checks"]["embedder"] == "not configured"
