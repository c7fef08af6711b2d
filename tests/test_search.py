"""
Search pipeline tests.

Tests:
- Nearest image ranks first at distance 0, ordering is ascending
- Result length never exceeds top_k
- Vectors without image rows are dropped silently
- Filters run after resolution and keep survivor order
- find_similar reuses the stored embedding
"""

import numpy as np
import pytest

from core.errors import (
    DimensionMismatchError,
    EmbeddingError,
    ImageNotFoundError,
    IndexSearchError,
    InvalidRequestError,
)
from core.search.filters import SearchFilters
from tests.fakes import DIM, image_input, unit


def _near_a() -> np.ndarray:
    vector = np.zeros(DIM, dtype=np.float32)
    vector[0], vector[1] = 0.99, 0.01
    return vector


@pytest.fixture
def scenario(orchestrator, embedder, record):
    embedder.vectors[b"A"] = unit(0)
    embedder.vectors[b"B"] = _near_a()
    image_a = orchestrator.ingest(image_input("a.jpg", b"A"), record.id)
    image_b = orchestrator.ingest(image_input("b.jpg", b"B"), record.id)
    return image_a, image_b


class TestRanking:
    def test_query_equal_to_a_ranks_a_before_b(self, pipeline, scenario, record):
        image_a, image_b = scenario

        results = pipeline.search(b"A", top_k=10, filename="query.jpg")

        assert [match.image_id for match in results] == [image_a.id, image_b.id]
        assert results[0].distance == pytest.approx(0.0, abs=1e-6)
        assert results[1].distance > results[0].distance
        assert results[0].record_id == record.id
        assert results[0].record_name == record.name
        assert results[0].description == record.description

    def test_results_are_ascending_and_bounded(self, pipeline, orchestrator, record):
        for index in range(12):
            orchestrator.ingest(image_input(f"img{index}.jpg"), record.id)

        for top_k in (1, 3, 5, 20):
            results = pipeline.search_by_vector(np.full(DIM, 0.5, dtype=np.float32), top_k=top_k)
            distances = [match.distance for match in results]
            assert len(results) <= top_k
            assert distances == sorted(distances)

    def test_empty_index(self, pipeline, record):
        assert pipeline.search_by_vector(unit(0), top_k=5) == []


class TestOrphans:
    def test_vector_without_row_is_dropped(self, pipeline, vector_store, scenario):
        image_a, image_b = scenario
        vector_store.insert("orphan", unit(0))

        results = pipeline.search_by_vector(unit(0), top_k=3)

        assert "orphan" not in [match.vector_id for match in results]
        assert [match.image_id for match in results] == [image_a.id, image_b.id]

    def test_orphans_count_against_top_k(self, pipeline, vector_store, scenario):
        vector_store.insert("orphan", unit(0))

        results = pipeline.search_by_vector(unit(0), top_k=2)

        assert len(results) == 1

    def test_deleted_record_never_resolves(self, pipeline, orchestrator, vector_store, scenario, record):
        image_a, image_b = scenario
        vector_store.fail_delete = True
        orchestrator.delete_record(record.id)
        vector_store.fail_delete = False

        assert vector_store.contains(image_a.vector_id)
        assert vector_store.contains(image_b.vector_id)
        results = pipeline.search(b"A", top_k=10)
        assert {image_a.vector_id, image_b.vector_id}.isdisjoint(match.vector_id for match in results)


class TestFilters:
    def test_text_filter_on_description(self, pipeline, orchestrator, metadata, embedder):
        cats = metadata.create_record("Cats", "tabby cat pictures")
        dogs = metadata.create_record("Dogs", "golden retriever")
        embedder.vectors[b"cat"] = unit(0)
        embedder.vectors[b"dog"] = _near_a()
        orchestrator.ingest(image_input("cat.jpg", b"cat"), cats.id)
        orchestrator.ingest(image_input("dog.jpg", b"dog"), dogs.id)

        results = pipeline.search(b"cat", top_k=10, filters=SearchFilters.build(text="RETRIEVER"))

        assert [match.record_id for match in results] == [dogs.id]

    def test_distance_range_keeps_order(self, pipeline, orchestrator, record, embedder):
        for index in range(4):
            vector = unit(0) * (1.0 - 0.1 * index)
            embedder.vectors[f"v{index}".encode()] = vector
            orchestrator.ingest(image_input(f"v{index}.jpg", f"v{index}".encode()), record.id)

        filters = SearchFilters.build(min_distance=0.05, max_distance=0.25)
        results = pipeline.search_by_vector(unit(0), top_k=10, filters=filters)

        distances = [match.distance for match in results]
        assert distances == sorted(distances)
        assert distances == pytest.approx([0.1, 0.2], abs=1e-5)

    def test_record_name_filter(self, pipeline, scenario, record):
        assert pipeline.search(b"A", top_k=5, filters=SearchFilters.build(record_name="nomatch")) == []
        assert len(pipeline.search(b"A", top_k=5, filters=SearchFilters.build(record_name="record r"))) == 2


class TestFindSimilar:
    def test_source_ranks_first(self, pipeline, scenario, embedder):
        image_a, image_b = scenario
        calls = embedder.calls

        results = pipeline.find_similar(image_a.id, top_k=5)

        assert results[0].image_id == image_a.id
        assert results[0].distance == pytest.approx(0.0, abs=1e-6)
        assert embedder.calls == calls

    def test_exclude_self(self, pipeline, orchestrator, scenario, record):
        image_a, image_b = scenario
        orchestrator.ingest(image_input("c.jpg"), record.id)

        results = pipeline.find_similar(image_a.id, top_k=2, exclude_self=True)

        assert image_a.id not in [match.image_id for match in results]
        assert len(results) == 2
        assert results[0].image_id == image_b.id

    def test_unknown_image(self, pipeline):
        with pytest.raises(ImageNotFoundError):
            pipeline.find_similar(12345, top_k=5)

    def test_missing_stored_vector(self, pipeline, vector_store, scenario):
        image_a, _ = scenario
        vector_store.delete(image_a.vector_id)

        with pytest.raises(IndexSearchError):
            pipeline.find_similar(image_a.id, top_k=5)


class TestErrors:
    def test_embedding_failure_is_fatal(self, pipeline, embedder, scenario):
        embedder.failures[b"bad"] = EmbeddingError("unreachable", step="embed", retryable=True)

        with pytest.raises(EmbeddingError):
            pipeline.search(b"bad", top_k=5)

    def test_index_failure_is_fatal(self, pipeline, vector_store, scenario):
        vector_store.fail_search = True

        with pytest.raises(IndexSearchError) as excinfo:
            pipeline.search(b"A", top_k=5)

        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_invalid_top_k(self, pipeline):
        with pytest.raises(InvalidRequestError):
            pipeline.search_by_vector(unit(0), top_k=0)

    def test_query_dimension_mismatch(self, pipeline):
        with pytest.raises(DimensionMismatchError):
            pipeline.search_by_vector(np.ones(DIM + 1, dtype=np.float32), top_k=3)

    def test_empty_query(self, pipeline):
        with pytest.raises(InvalidRequestError):
            pipeline.search(b"", top_k=3)


class TestResolveVectorId:
    def test_resolves_image_and_record(self, pipeline, scenario, record):
        image_a, _ = scenario

        image, owner = pipeline.resolve_vector_id(image_a.vector_id)

        assert image.id == image_a.id
        assert owner.id == record.id

    def test_unknown_vector_id(self, pipeline):
        with pytest.raises(ImageNotFoundError):
            pipeline.resolve_vector_id("missing")
