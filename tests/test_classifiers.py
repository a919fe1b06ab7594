"""Tests for the sentiment / emotion model service client."""

from __future__ import annotations

import json

import httpx
import pytest

from mia.classifiers import ModelServiceClient
from mia.config import Settings
from mia.errors import ClassificationError


def _client(handler) -> ModelServiceClient:
    return ModelServiceClient(
        base_url="http://models.test/",
        settings=Settings(),
        transport=httpx.MockTransport(handler),
    )


class TestModelServiceClient:

    def test_classify(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"sentimiento": "NEGATIVO"})

        with _client(handler) as client:
            assert client.classify("tengo un mal día") == "negativo"
        assert seen == {"path": "/sentiment", "body": {"text": "tengo un mal día"}}

    def test_predict(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"mia_emocion": "Tristeza"})

        with _client(handler) as client:
            assert client.predict("tengo un mal día", "negativo") == "tristeza"
        assert seen["path"] == "/mia_predict"
        assert seen["body"] == {"text": "tengo un mal día", "sentimiento": "negativo"}

    def test_missing_label_is_empty(self):
        with _client(lambda r: httpx.Response(200, json={})) as client:
            assert client.classify("hola") == ""

    def test_http_error(self):
        with _client(lambda r: httpx.Response(503, text="overloaded")) as client:
            with pytest.raises(ClassificationError, match="sentiment"):
                client.classify("hola")

    def test_invalid_json(self):
        with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(ClassificationError):
                client.predict("hola", "neutral")

    def test_non_object_body(self):
        with _client(lambda r: httpx.Response(200, json=["a"])) as client:
            with pytest.raises(ClassificationError, match="unexpected response body"):
                client.classify("hola")

    def test_connection_error_retried_then_raised(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        with _client(handler) as client:
            with pytest.raises(ClassificationError):
                client.classify("hola")
        assert len(attempts) == 2

    def test_base_url_from_settings(self):
        client = ModelServiceClient(settings=Settings(MIA_MODELS_URL="http://svc:9000/"))
        assert client.base_url == "http://svc:9000"
        client.close()
