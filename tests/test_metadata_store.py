"""
SQLite metadata store tests.
"""

import time

import pytest

from core.errors import ImageNotFoundError, InvalidRequestError, MetadataWriteError, RecordNotFoundError
from core.metadata.sqlite_store import MetadataStore


@pytest.fixture
def store(tmp_path):
    return MetadataStore(tmp_path / "metadata.sqlite3")


class TestRecords:
    def test_create_and_get(self, store):
        created = store.create_record("Cats", "tabby")

        fetched = store.get_record(created.id)

        assert fetched.name == "Cats"
        assert fetched.description == "tabby"
        assert fetched.images == []
        assert fetched.created_at is not None

    def test_name_required(self, store):
        with pytest.raises(InvalidRequestError):
            store.create_record("   ")

    def test_list_newest_first_with_total(self, store):
        for name in ("one", "two", "three"):
            store.create_record(name)

        page_one, total = store.list_records(limit=2, offset=0)
        page_two, _ = store.list_records(limit=2, offset=2)

        assert total == 3
        assert [record.name for record in page_one] == ["three", "two"]
        assert [record.name for record in page_two] == ["one"]

    def test_update_keeps_empty_fields(self, store):
        record = store.create_record("Cats", "tabby")

        updated = store.update_record(record.id, name="", description="siamese")

        assert updated.name == "Cats"
        assert updated.description == "siamese"

    def test_update_ignores_blank_name(self, store):
        record = store.create_record("Cats", "tabby")

        updated = store.update_record(record.id, name="   ", description="")

        assert updated.name == "Cats"
        assert updated.description == "tabby"

    def test_update_missing_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.update_record(42, name="x")

    def test_delete_cascades_and_returns_images(self, store):
        record = store.create_record("Cats")
        first = store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")
        second = store.add_image(record.id, "b.jpg", "uploads/b.jpg", "vec-b")

        deleted = store.delete_record(record.id)

        assert [image.id for image in deleted.images] == [first.id, second.id]
        assert store.vector_ids() == set()
        with pytest.raises(ImageNotFoundError):
            store.get_image(first.id)

    def test_delete_missing_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.delete_record(7)


class TestImages:
    def test_add_image_requires_record(self, store):
        with pytest.raises(RecordNotFoundError):
            store.add_image(99, "a.jpg", "uploads/a.jpg", "vec-a")

    def test_vector_id_is_unique(self, store):
        record = store.create_record("Cats")
        store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")

        with pytest.raises(MetadataWriteError):
            store.add_image(record.id, "b.jpg", "uploads/b.jpg", "vec-a")

    def test_images_ordered_by_creation(self, store):
        record = store.create_record("Cats")
        ids = [store.add_image(record.id, f"{n}.jpg", f"uploads/{n}.jpg", f"vec-{n}").id for n in range(3)]

        assert [image.id for image in store.get_record(record.id).images] == ids

    def test_lookup_by_vector_id(self, store):
        record = store.create_record("Cats")
        image = store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")

        assert store.get_image_by_vector_id("vec-a").id == image.id
        with pytest.raises(ImageNotFoundError):
            store.get_image_by_vector_id("vec-missing")

    def test_delete_image_twice(self, store):
        record = store.create_record("Cats")
        image = store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")

        assert store.delete_image(image.id).vector_id == "vec-a"
        with pytest.raises(ImageNotFoundError):
            store.delete_image(image.id)

    def test_resolve_vector_ids_skips_unknown(self, store):
        record = store.create_record("Cats", "tabby")
        store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")

        resolved = store.resolve_vector_ids(["vec-a", "vec-missing"])

        assert set(resolved) == {"vec-a"}
        image, owner = resolved["vec-a"]
        assert image.filename == "a.jpg"
        assert owner.name == "Cats"


class TestCounts:
    def test_counts_since(self, store):
        record = store.create_record("Old")
        store.add_image(record.id, "a.jpg", "uploads/a.jpg", "vec-a")
        cutoff = time.time() + 1

        counts = store.counts(since=cutoff)

        assert counts == {"records": 1, "images": 1, "records_since": 0, "images_since": 0}

    def test_ping(self, store):
        store.ping()
