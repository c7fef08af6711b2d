"""
Local embedder and format detection tests.
"""

import io

import numpy as np
import pytest
from PIL import Image

from config.settings import EmbedderSettings
from core.embedders import HttpEmbedder, PixelStatsEmbedder, detect_image_format, make_embedder
from core.errors import EmbeddingError


def _png(color=(255, 0, 0), size=(32, 32)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class TestFormatDetection:
    def test_extension_wins(self):
        assert detect_image_format(b"", "photo.JPG") == "jpeg"
        assert detect_image_format(b"", "photo.webp") == "webp"

    def test_sniffs_bytes_without_extension(self):
        assert detect_image_format(_png(), "upload") == "png"

    def test_defaults_to_jpeg(self):
        assert detect_image_format(b"not an image") == "jpeg"


class TestPixelStatsEmbedder:
    def test_vector_has_configured_dimension_and_unit_norm(self):
        gradient = Image.linear_gradient("L").convert("RGB")
        buffer = io.BytesIO()
        gradient.save(buffer, format="PNG")

        vector = PixelStatsEmbedder(dim=64).embed(buffer.getvalue())

        assert vector.shape == (64,)
        assert np.linalg.norm(vector) == pytest.approx(1.0, abs=1e-5)

    def test_deterministic(self):
        embedder = PixelStatsEmbedder(dim=32)
        data = _png((10, 200, 30))

        assert np.array_equal(embedder.embed(data), embedder.embed(data))

    def test_undecodable_input(self):
        with pytest.raises(EmbeddingError) as excinfo:
            PixelStatsEmbedder(dim=32).embed(b"garbage")

        assert excinfo.value.retryable is False


class TestFactory:
    def test_pixel(self):
        assert isinstance(make_embedder(EmbedderSettings(name="pixel"), dim=16), PixelStatsEmbedder)

    def test_http(self):
        embedder = make_embedder(EmbedderSettings(name="http", api_key="k"), dim=16)
        try:
            assert isinstance(embedder, HttpEmbedder)
            assert embedder.dim == 16
        finally:
            embedder.close()

    def test_unknown(self):
        with pytest.raises(ValueError):
            make_embedder(EmbedderSettings(name="clip"), dim=16)
