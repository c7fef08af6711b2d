"""
Reconciler tests.

Tests:
- Orphan vectors and dangling rows are reported
- Purge removes only old unreferenced vectors
- A vector whose ingestion is still running survives a purge
- Purge failures are logged with the delete error kind
"""

import logging
import time

import pytest

from core.reconcile import Reconciler
from tests.fakes import image_input, unit


class TestReconciler:
    def test_consistent_stores(self, orchestrator, vector_store, metadata, record):
        orchestrator.ingest(image_input("a.jpg"), record.id)

        report = Reconciler(vector_store, metadata).run()

        assert report.consistent

    def test_reports_orphans_and_dangling_rows(self, orchestrator, vector_store, metadata, record):
        image = orchestrator.ingest(image_input("a.jpg"), record.id)
        vector_store.insert("orphan-1", unit(0))
        vector_store.delete(image.vector_id)

        report = Reconciler(vector_store, metadata, grace_seconds=0).scan()

        assert report.orphan_vectors == ["orphan-1"]
        assert report.dangling_images == [image.vector_id]
        assert not report.consistent

    def test_purge_removes_only_orphans(self, orchestrator, vector_store, metadata, record):
        image = orchestrator.ingest(image_input("a.jpg"), record.id)
        vector_store.insert("orphan-1", unit(0))
        vector_store.insert("orphan-2", unit(1))

        report = Reconciler(vector_store, metadata, grace_seconds=0).run(purge=True)

        assert report.purged == ["orphan-1", "orphan-2"]
        assert vector_store.ids() == [image.vector_id]

    def test_purge_failures_are_collected(self, vector_store, metadata, caplog):
        vector_store.insert("orphan-1", unit(0))
        vector_store.fail_delete = True

        with caplog.at_level(logging.ERROR):
            report = Reconciler(vector_store, metadata, grace_seconds=0).run(purge=True)

        assert report.purge_failures == ["orphan-1"]
        assert vector_store.contains("orphan-1")
        failed = [
            record.extra_data
            for record in caplog.records
            if getattr(record, "extra_data", {}).get("event") == "purge_failed"
        ]
        assert failed[0]["error"] == "IndexDeleteError"
        assert failed[0]["vector_id"] == "orphan-1"


class TestGracePeriod:
    def test_young_vectors_are_pending_not_orphans(self, vector_store, metadata):
        vector_store.insert("fresh", unit(0))

        report = Reconciler(vector_store, metadata, grace_seconds=60).scan()

        assert report.pending_vectors == ["fresh"]
        assert report.orphan_vectors == []
        assert report.consistent

    def test_vectors_past_grace_become_orphans(self, vector_store, metadata):
        vector_store.insert("stale", unit(0))

        report = Reconciler(vector_store, metadata, grace_seconds=60).run(purge=True, now=time.time() + 61)

        assert report.purged == ["stale"]
        assert vector_store.count() == 0

    def test_purge_during_ingestion_keeps_the_vector(self, orchestrator, vector_store, metadata, record, monkeypatch):
        reconciler = Reconciler(vector_store, metadata, grace_seconds=60)
        reports = []
        write_row = metadata.add_image

        def purge_then_write(*args, **kwargs):
            reports.append(reconciler.run(purge=True))
            return write_row(*args, **kwargs)

        monkeypatch.setattr(metadata, "add_image", purge_then_write)
        image = orchestrator.ingest(image_input("a.jpg"), record.id)

        assert reports[0].pending_vectors == [image.vector_id]
        assert reports[0].purged == []
        assert vector_store.contains(image.vector_id)
        assert reconciler.scan().consistent

    def test_negative_grace_rejected(self, vector_store, metadata):
        with pytest.raises(ValueError):
            Reconciler(vector_store, metadata, grace_seconds=-1)
