"""
Generative completion clients for setu-gateway.

Each client sends a prompt plus a JSON schema to a hosted or local model
and returns the structured object the model produced. Clients make exactly
one HTTP call per complete() and never retry; retry policy lives in the
translation controller.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from .config import LLMConfig
from .errors import TranslationError

logger = logging.getLogger(__name__)


class CompletionClient(ABC):
    """A generative completion capability constrained to a JSON schema."""

    name: str = "base"

    @abstractmethod
    async def complete(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        """
        Generate a structured object for the prompt.

        Raises:
            TranslationError: on transport failure, HTTP error, or a
                response that is not a JSON object
        """


class HttpCompletionClient(CompletionClient):
    """Shared plumbing for JSON-over-HTTP providers."""

    def __init__(
        self,
        model: str,
        base_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 30.0,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout_seconds

    async def _post(
        self,
        url: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        logger.debug(f"POST {url} ({self.name}, model={self.model})")

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(url, json=body, headers=headers, params=params)
                response.raise_for_status()
                return response.json()
            except httpx.HTTPStatusError as e:
                logger.warning(f"HTTP error from {self.name}: {e}")
                raise TranslationError(
                    f"{self.name} returned HTTP {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                logger.warning(f"Transport error from {self.name}: {e}")
                raise TranslationError(f"{self.name} request failed: {e}") from e
            except ValueError as e:
                raise TranslationError(f"{self.name} returned non-JSON body") from e


def parse_json_object(text: str | None, source: str) -> dict[str, Any]:
    """Parse model output text into a JSON object."""
    if not text:
        raise TranslationError(f"{source} returned an empty completion")

    cleaned = text.strip()
    # Some models wrap JSON in a markdown fence
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise TranslationError(f"{source} returned malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise TranslationError(f"{source} returned {type(data).__name__}, expected object")
    return data


class GeminiClient(HttpCompletionClient):
    """Google Gemini generateContent with a response schema."""

    name = "gemini"

    async def complete(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": schema,
            },
        }
        data = await self._post(url, body, params={"key": self.api_key or ""})

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationError("gemini response has no candidate text") from e
        return parse_json_object(text, self.name)


class OllamaClient(HttpCompletionClient):
    """Local Ollama /api/generate with structured output."""

    name = "ollama"

    async def complete(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/api/generate"
        body = {
            "model": self.model,
            "prompt": prompt,
            "format": schema,
            "stream": False,
        }
        data = await self._post(url, body)
        return parse_json_object(data.get("response"), self.name)


class OpenAIClient(HttpCompletionClient):
    """OpenAI-compatible chat completions with a json_schema response format."""

    name = "openai"

    async def complete(self, prompt: str, schema: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/chat/completions"
        body = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {"name": "catalog_item", "schema": schema},
            },
        }
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        data = await self._post(url, body, headers=headers)

        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise TranslationError("openai response has no message content") from e
        return parse_json_object(text, self.name)


PROVIDERS: dict[str, type[HttpCompletionClient]] = {
    "gemini": GeminiClient,
    "ollama": OllamaClient,
    "openai": OpenAIClient,
}


def make_client(config: LLMConfig) -> CompletionClient | None:
    """
    Build the client for the configured provider.

    Returns None when the provider is unknown or missing its API key,
    meaning the capability is unavailable.
    """
    if not config.is_available():
        logger.debug(f"Completion provider {config.provider!r} not available")
        return None

    client_cls = PROVIDERS[config.provider]
    return client_cls(
        model=config.model,
        base_url=config.base_url,
        api_key=config.get_api_key(),
        timeout_seconds=config.timeout_seconds,
    )
