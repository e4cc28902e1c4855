"""Tests for the generative completion clients."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from setu_gateway.config import LLMConfig
from setu_gateway.errors import TranslationError
from setu_gateway.llm import (
    GeminiClient,
    OllamaClient,
    OpenAIClient,
    make_client,
    parse_json_object,
)
from setu_gateway.schema import CATALOG_ITEM_JSON_SCHEMA

ITEM = {
    "descriptor": {"name": "Nasik Onions"},
    "price": {"value": 40},
    "quantity": {"available": {"count": 500}, "unit": "kg"},
}


@pytest.fixture
def mock_response():
    """Create a mock httpx response."""

    def _make_response(json_data, status_code=200):
        response = MagicMock()
        response.status_code = status_code
        response.json.return_value = json_data
        response.raise_for_status = MagicMock()
        if status_code >= 400:
            response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "Error", request=MagicMock(), response=response
            )
        return response

    return _make_response


@pytest.fixture
def mock_http():
    """Patch httpx.AsyncClient and hand back the mocked client."""
    with patch("httpx.AsyncClient") as MockClient:
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.__aexit__.return_value = None
        MockClient.return_value = mock_client
        yield mock_client


class TestParseJsonObject:
    """Test model output parsing."""

    def test_plain_json(self):
        assert parse_json_object(json.dumps(ITEM), "test") == ITEM

    def test_fenced_json(self):
        text = "```json\n" + json.dumps(ITEM) + "\n```"
        assert parse_json_object(text, "test") == ITEM

    def test_empty(self):
        with pytest.raises(TranslationError, match="empty"):
            parse_json_object("", "test")

    def test_malformed(self):
        with pytest.raises(TranslationError, match="malformed"):
            parse_json_object("{not json", "test")

    def test_not_an_object(self):
        with pytest.raises(TranslationError, match="expected object"):
            parse_json_object("[1, 2]", "test")


class TestGeminiClient:
    """Test the Gemini client."""

    async def test_complete(self, mock_http, mock_response):
        """Should post the schema and parse the candidate text."""
        mock_http.post.return_value = mock_response(
            {"candidates": [{"content": {"parts": [{"text": json.dumps(ITEM)}]}}]}
        )
        client = GeminiClient(
            model="gemini-2.0-flash",
            base_url="https://generativelanguage.googleapis.com/v1beta",
            api_key="k",
        )

        result = await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

        assert result == ITEM
        args, kwargs = mock_http.post.call_args
        assert args[0].endswith("/models/gemini-2.0-flash:generateContent")
        assert kwargs["params"] == {"key": "k"}
        config = kwargs["json"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"] == CATALOG_ITEM_JSON_SCHEMA

    async def test_no_candidates(self, mock_http, mock_response):
        mock_http.post.return_value = mock_response({"candidates": []})
        client = GeminiClient(model="m", base_url="http://x", api_key="k")

        with pytest.raises(TranslationError, match="no candidate"):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

    async def test_http_error(self, mock_http, mock_response):
        """HTTP errors become TranslationError."""
        mock_http.post.return_value = mock_response({}, status_code=503)
        client = GeminiClient(model="m", base_url="http://x", api_key="k")

        with pytest.raises(TranslationError, match="HTTP 503"):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

    async def test_transport_error(self, mock_http):
        mock_http.post.side_effect = httpx.ConnectError("connection refused")
        client = GeminiClient(model="m", base_url="http://x", api_key="k")

        with pytest.raises(TranslationError, match="request failed"):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

    async def test_non_json_body(self, mock_http, mock_response):
        response = mock_response(None)
        response.json.side_effect = ValueError("not json")
        mock_http.post.return_value = response
        client = GeminiClient(model="m", base_url="http://x", api_key="k")

        with pytest.raises(TranslationError, match="non-JSON"):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)


class TestOllamaClient:
    """Test the Ollama client."""

    async def test_complete(self, mock_http, mock_response):
        mock_http.post.return_value = mock_response({"response": json.dumps(ITEM)})
        client = OllamaClient(model="llama3.1:8b", base_url="http://localhost:11434/")

        result = await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

        assert result == ITEM
        args, kwargs = mock_http.post.call_args
        assert args[0] == "http://localhost:11434/api/generate"
        assert kwargs["json"]["format"] == CATALOG_ITEM_JSON_SCHEMA
        assert kwargs["json"]["stream"] is False

    async def test_garbage_response(self, mock_http, mock_response):
        mock_http.post.return_value = mock_response({"response": "I didn't understand"})
        client = OllamaClient(model="m", base_url="http://localhost:11434")

        with pytest.raises(TranslationError):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)


class TestOpenAIClient:
    """Test the OpenAI-compatible client."""

    async def test_complete(self, mock_http, mock_response):
        mock_http.post.return_value = mock_response(
            {"choices": [{"message": {"content": json.dumps(ITEM)}}]}
        )
        client = OpenAIClient(model="gpt-4o-mini", base_url="https://api.openai.com/v1", api_key="sk")

        result = await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)

        assert result == ITEM
        args, kwargs = mock_http.post.call_args
        assert args[0] == "https://api.openai.com/v1/chat/completions"
        assert kwargs["headers"] == {"Authorization": "Bearer sk"}
        assert kwargs["json"]["response_format"]["type"] == "json_schema"

    async def test_missing_content(self, mock_http, mock_response):
        mock_http.post.return_value = mock_response({"choices": []})
        client = OpenAIClient(model="m", base_url="http://x", api_key="sk")

        with pytest.raises(TranslationError, match="no message content"):
            await client.complete("prompt", CATALOG_ITEM_JSON_SCHEMA)


class TestMakeClient:
    """Test client construction from config."""

    def test_gemini_with_key(self):
        client = make_client(LLMConfig(api_key="k"))
        assert isinstance(client, GeminiClient)
        assert client.api_key == "k"

    def test_gemini_without_key(self, no_api_key):
        """No key means the capability is unavailable."""
        assert make_client(LLMConfig()) is None

    def test_ollama(self):
        client = make_client(
            LLMConfig(provider="ollama", model="llama3.1:8b", base_url="http://localhost:11434")
        )
        assert isinstance(client, OllamaClient)

    def test_unknown_provider(self):
        assert make_client(LLMConfig(provider="mystery", api_key="k")) is None
