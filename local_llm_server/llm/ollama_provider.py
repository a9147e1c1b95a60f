"""
Ollama provider implementation.

Forwards rendered prompts to an upstream Ollama server's /api/generate.
"""

import logging
from typing import Optional

import httpx

from ..errors import ProviderError, ProviderUnavailable
from .base import TextGenerationProvider

logger = logging.getLogger(__name__)


class OllamaProvider(TextGenerationProvider):
    """Provider using an upstream Ollama for local inference."""

    def __init__(
        self,
        base_url: str,
        model: str,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.provider_name = "ollama"
        self.model_name = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def initialize(self) -> None:
        """Create the HTTP client and check that Ollama answers."""
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

        ok, error = await self.is_healthy()
        if ok:
            logger.info("Ollama is ready at %s (model=%s)", self._base_url, self.model_name)
        else:
            # Not fatal: requests will fail with ProviderUnavailable until it comes up
            logger.warning("Ollama not reachable at %s: %s", self._base_url, error)

    async def shutdown(self) -> None:
        """Clean up resources."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def is_healthy(self) -> tuple[bool, Optional[str]]:
        """Check if Ollama is running."""
        if self._client is None:
            return False, "client not initialized"
        try:
            response = await self._client.get(f"{self._base_url}/api/tags", timeout=5.0)
            response.raise_for_status()
            return True, None
        except httpx.HTTPError as e:
            return False, str(e)

    async def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a non-streaming generate request to Ollama."""
        if self._client is None:
            raise ProviderUnavailable("Ollama client not initialized")

        options: dict = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "options": options,
        }

        logger.debug("Ollama request: model=%s, prompt_len=%d", self.model_name, len(prompt))

        try:
            response = await self._client.post(f"{self._base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise ProviderUnavailable(f"Ollama unavailable at {self._base_url}: {e}") from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Ollama error: HTTP {e.response.status_code}: {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama error: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Ollama returned invalid JSON: {e}") from e

        content = data.get("response") if isinstance(data, dict) else None
        if not isinstance(content, str):
            raise ProviderError("Ollama response has no 'response' text")

        logger.debug("Ollama response: len=%d, eval_count=%s", len(content), data.get("eval_count"))
        return content
