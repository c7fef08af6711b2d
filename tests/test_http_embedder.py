"""
HTTP embedder tests against httpx.MockTransport.
"""

import base64
import json

import httpx
import numpy as np
import pytest

from core.embedders.http_embedder import HttpEmbedder
from core.errors import EmbeddingError

URL = "https://embeddings.test/api/v3/embeddings/multimodal"


def _embedder(handler, api_key="secret") -> HttpEmbedder:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpEmbedder(url=URL, api_key=api_key, model="vision-model", dim=4, timeout=5.0, client=client)


class TestHttpEmbedder:
    def test_posts_base64_image_and_returns_vector(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3, 0.4]}]})

        vector = _embedder(handler).embed(b"png-bytes", format="png")

        assert vector.dtype == np.float32
        assert np.allclose(vector, [0.1, 0.2, 0.3, 0.4])
        assert seen["auth"] == "Bearer secret"
        assert seen["body"]["model"] == "vision-model"
        image = seen["body"]["input"]["images"][0]
        assert image["format"] == "png"
        assert base64.b64decode(image["data"]) == b"png-bytes"

    def test_single_object_data_is_accepted(self):
        def handler(request):
            return httpx.Response(200, json={"data": {"embedding": [1, 0, 0, 0]}})

        assert _embedder(handler).embed(b"x").tolist() == [1.0, 0.0, 0.0, 0.0]

    @pytest.mark.parametrize("status, retryable", [(429, True), (503, True), (400, False), (401, False)])
    def test_status_classification(self, status, retryable):
        def handler(request):
            return httpx.Response(status, text="nope")

        with pytest.raises(EmbeddingError) as excinfo:
            _embedder(handler).embed(b"x")

        assert excinfo.value.retryable is retryable

    def test_exhausted_budget_is_not_widened(self):
        seen = {}

        def handler(request):
            seen["timeout"] = request.extensions["timeout"]
            return httpx.Response(200, json={"data": [{"embedding": [0, 0, 0, 1]}]})

        embedder = _embedder(handler)
        embedder.embed(b"x", timeout=0.0)
        assert seen["timeout"]["read"] == 0.0

        embedder.embed(b"x")
        assert seen["timeout"]["read"] == 5.0

    def test_timeout_is_retryable(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(EmbeddingError) as excinfo:
            _embedder(handler).embed(b"x")

        assert excinfo.value.timed_out is True
        assert excinfo.value.retryable is True

    def test_connection_error_is_retryable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(EmbeddingError) as excinfo:
            _embedder(handler).embed(b"x")

        assert excinfo.value.retryable is True
        assert excinfo.value.timed_out is False

    def test_missing_embedding(self):
        def handler(request):
            return httpx.Response(200, json={"data": []})

        with pytest.raises(EmbeddingError) as excinfo:
            _embedder(handler).embed(b"x")

        assert excinfo.value.retryable is False

    def test_non_json_body(self):
        def handler(request):
            return httpx.Response(200, text="<html>")

        with pytest.raises(EmbeddingError):
            _embedder(handler).embed(b"x")

    def test_missing_api_key(self):
        embedder = _embedder(lambda request: httpx.Response(200), api_key=None)

        assert not embedder.is_configured()
        with pytest.raises(EmbeddingError):
            embedder.embed(b"x")
