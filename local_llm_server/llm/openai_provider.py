"""
OpenAI provider implementation.

Sends the rendered prompt as a single user message to an
OpenAI-compatible chat completions API.
"""

import logging
from typing import Optional

import httpx
import openai
from openai import AsyncOpenAI

from ..errors import ProviderError, ProviderUnavailable
from .base import TextGenerationProvider

logger = logging.getLogger(__name__)


class OpenAIProvider(TextGenerationProvider):
    """Provider using OpenAI's API (or anything speaking it)."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: Optional[str] = None,
        timeout: float = 120.0,
        max_retries: int = 2,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.provider_name = "openai"
        self.model_name = model
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._max_retries = max_retries
        self._http_client = http_client
        self._client: Optional[AsyncOpenAI] = None

    async def initialize(self) -> None:
        """Initialize the OpenAI client."""
        if not self._api_key:
            logger.error("OpenAI API key not set; generation will be unavailable")
            return

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=self._max_retries,
            http_client=self._http_client,
        )
        logger.info("OpenAI client initialized (model=%s)", self.model_name)

    async def shutdown(self) -> None:
        """Clean up resources."""
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a chat completion request to OpenAI."""
        if self._client is None:
            raise ProviderUnavailable("OpenAI client not configured")

        params = {
            "model": self.model_name,
            "messages": [{"role": "user", "content": prompt}],
        }
        if temperature is not None:
            params["temperature"] = temperature
        if max_tokens is not None:
            params["max_tokens"] = max_tokens

        try:
            completion = await self._client.chat.completions.create(**params)
        except openai.APIConnectionError as e:
            raise ProviderUnavailable(f"OpenAI unavailable: {e}") from e
        except openai.APIError as e:
            raise ProviderError(f"OpenAI error: {e}") from e

        if not completion.choices:
            raise ProviderError("OpenAI returned no choices")
        content = completion.choices[0].message.content or ""
        if completion.usage:
            logger.debug(
                "OpenAI response: len=%d, tokens=%s",
                len(content), completion.usage.total_tokens,
            )
        return content
