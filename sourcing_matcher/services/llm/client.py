"""LLM client abstraction for local model integration.

Supports two backends:
- Ollama (primary, recommended for local deployment)
- Mock (canned JSON responses for tests)

Used only by the web research provider to turn free product text into a
structured description.

Example:
    client = OllamaClient(settings)
    data = await client.complete_json("Extract product data from: ...")
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import structlog

from sourcing_matcher.config import LLMBackendType, LLMSettings, get_llm_settings

logger = structlog.get_logger(__name__)


class LLMClient(ABC):
    """Abstract base class for LLM clients."""

    def __init__(self, settings: Optional[LLMSettings] = None):
        self.settings = settings or get_llm_settings()
        self._log = logger.bind(
            component="LLMClient",
            backend=self.settings.backend.value,
            model=self.settings.model,
        )

    @abstractmethod
    async def complete_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Generate a JSON completion.

        Args:
            prompt: User prompt expecting JSON output
            system_prompt: Optional system prompt

        Returns:
            Parsed JSON object ({} when nothing parseable came back)
        """

    @abstractmethod
    async def is_available(self) -> bool:
        """Check if the LLM backend is available."""

    async def close(self) -> None:
        """Release any held connections."""


class OllamaClient(LLMClient):
    """Ollama-based LLM client.

    Talks to the Ollama HTTP API (default: http://localhost:11434) using
    ``format="json"`` so the model is constrained to valid JSON.
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(settings)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.settings.ollama_url,
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def is_available(self) -> bool:
        """Check if Ollama is running and the model is pulled."""
        try:
            client = await self._get_client()
            response = await client.get("/api/tags")
        except httpx.HTTPError as e:
            self._log.debug("ollama_not_available", error=str(e))
            return False

        if response.status_code != 200:
            return False

        models = [m.get("name", "") for m in response.json().get("models", [])]
        model_base = self.settings.model.split(":")[0]
        available = any(m.startswith(model_base) for m in models)
        if not available:
            self._log.warning(
                "model_not_available",
                required_model=self.settings.model,
                available_models=models,
            )
        return available

    async def complete_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Generate JSON completion using Ollama's JSON mode."""
        client = await self._get_client()

        payload: Dict[str, Any] = {
            "model": self.settings.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self.settings.temperature,
                "num_predict": self.settings.max_tokens,
            },
        }
        if system_prompt:
            payload["system"] = system_prompt

        for attempt in range(self.settings.max_retries):
            try:
                response = await client.post("/api/generate", json=payload)
                response.raise_for_status()
                break
            except httpx.HTTPError as e:
                self._log.warning(
                    "ollama_request_failed",
                    attempt=attempt + 1,
                    error=str(e),
                )
                if attempt == self.settings.max_retries - 1:
                    raise
                await asyncio.sleep(1 * (attempt + 1))

        content = response.json().get("response", "{}")
        try:
            result = json.loads(content)
        except json.JSONDecodeError as e:
            self._log.warning("json_parse_failed", content=content[:200], error=str(e))
            return extract_json(content)
        return result if isinstance(result, dict) else {}


def extract_json(content: str) -> Dict[str, Any]:
    """Pull the first JSON object out of text that carries extra prose."""
    match = re.search(r"\{.*\}", content, re.DOTALL)
    if match:
        try:
            result = json.loads(match.group())
        except json.JSONDecodeError:
            return {}
        return result if isinstance(result, dict) else {}
    return {}


class MockLLMClient(LLMClient):
    """Mock LLM client for testing.

    Returns the first canned response whose key occurs in the prompt.
    """

    def __init__(
        self,
        settings: Optional[LLMSettings] = None,
        responses: Optional[Dict[str, Dict[str, Any]]] = None,
        default: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(settings or LLMSettings(backend=LLMBackendType.MOCK))
        self.responses = responses or {}
        self.default = default or {}
        self.calls: List[Dict[str, Any]] = []

    async def is_available(self) -> bool:
        return True

    async def complete_json(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append({"prompt": prompt, "system_prompt": system_prompt})
        for key, response in self.responses.items():
            if key.lower() in prompt.lower():
                return dict(response)
        return dict(self.default)


def get_llm_client(settings: Optional[LLMSettings] = None) -> LLMClient:
    """Create the client for the configured backend."""
    settings = settings or get_llm_settings()
    if settings.backend == LLMBackendType.MOCK:
        return MockLLMClient(settings)
    return OllamaClient(settings)
