"""LLM adapters used by the AI-assisted analysis strategy."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from codesentinel.exceptions import AIAdapterFailure

logger = logging.getLogger(__name__)


class LLMAdapter(ABC):
    """Base class for LLM providers.

    The pipeline only relies on `generate` and `is_available`, so providers
    can be swapped without touching the analysis code.
    """

    name: str = "llm"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Send a prompt and return the model's text response.

        Raises:
            AIAdapterFailure: On provider, transport or empty-response errors.
        """
        ...

    @abstractmethod
    async def is_available(self) -> bool:
        """Return True if the provider is configured and reachable."""
        ...


class OllamaAdapter(LLMAdapter):
    """Runs prompts against a local Ollama server."""

    name = "ollama"
    OLLAMA_URL = "http://localhost:11434"

    def __init__(
        self,
        model: str = "llama3.1:70b",
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            model: Ollama model tag.
            base_url: Server URL. Defaults to OLLAMA_URL.
            client: Optional httpx client.
        """
        self.model = model
        self.base_url = (base_url or self.OLLAMA_URL).rstrip("/")
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=300.0)  # LLM can be slow

    async def generate(self, prompt: str) -> str:
        client = await self._get_client()

        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": 0.1,  # Low temperature for consistent findings
            },
        }

        try:
            response = await client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            text = response.json().get("response", "")
        except httpx.HTTPError as e:
            raise AIAdapterFailure(f"Ollama request failed: {e}") from e
        except ValueError as e:
            raise AIAdapterFailure(f"Ollama returned a non-JSON body: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()

        if not text or not text.strip():
            raise AIAdapterFailure("Empty response from Ollama")
        return text

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model is pulled."""
        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}/api/tags")
            if response.status_code != 200:
                return False
            models = response.json().get("models", [])
            return any(self.model in m.get("name", "") for m in models)
        except httpx.HTTPError:
            return False
        finally:
            if self._client is None:
                await client.aclose()


class AnthropicAdapter(LLMAdapter):
    """Runs prompts against the Anthropic Messages API.

    If the primary model is rejected (HTTP 400/404), the request is retried
    once with the fallback model.
    """

    name = "anthropic"
    API_URL = "https://api.anthropic.com/v1/messages"
    API_VERSION = "2023-06-01"
    MAX_TOKENS = 4000

    def __init__(
        self,
        api_key: str | None,
        model: str = "claude-sonnet-4-20250514",
        fallback_model: str | None = "claude-3-5-haiku-20241022",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            api_key: Anthropic API key. The adapter reports itself unavailable without one.
            model: Primary model.
            fallback_model: Model to retry with when the primary is rejected.
            client: Optional httpx client.
        """
        self._api_key = api_key
        self.model = model
        self.fallback_model = fallback_model
        self._client = client

    def _headers(self) -> dict[str, str]:
        return {
            "x-api-key": self._api_key or "",
            "anthropic-version": self.API_VERSION,
            "content-type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create an HTTP client."""
        if self._client is not None:
            return self._client
        return httpx.AsyncClient(timeout=120.0)

    async def _post_message(
        self,
        client: httpx.AsyncClient,
        model: str,
        prompt: str,
    ) -> httpx.Response:
        payload = {
            "model": model,
            "max_tokens": self.MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        return await client.post(self.API_URL, json=payload, headers=self._headers())

    @staticmethod
    def _extract_text(data: dict) -> str:
        """Concatenate the text blocks of a Messages API response."""
        blocks = data.get("content") or []
        return "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

    async def generate(self, prompt: str) -> str:
        if not self._api_key:
            raise AIAdapterFailure("Anthropic API key is not configured")

        client = await self._get_client()
        try:
            response = await self._post_message(client, self.model, prompt)
            if response.status_code in (400, 404) and self.fallback_model:
                logger.warning(
                    f"Model {self.model} rejected ({response.status_code}), "
                    f"retrying with {self.fallback_model}"
                )
                response = await self._post_message(client, self.fallback_model, prompt)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise AIAdapterFailure(f"Anthropic request failed: {e}") from e
        except ValueError as e:
            raise AIAdapterFailure(f"Anthropic returned a non-JSON body: {e}") from e
        finally:
            if self._client is None:
                await client.aclose()

        text = self._extract_text(data) if isinstance(data, dict) else ""
        if not text.strip():
            raise AIAdapterFailure("Empty text in Anthropic API response")

        logger.debug(f"Anthropic response received ({len(text)} chars)")
        return text

    async def is_available(self) -> bool:
        """The API is treated as available whenever a key is configured."""
        return bool(self._api_key)
