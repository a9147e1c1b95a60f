"""
Abstract base class for text generation providers.

The gateway never talks to a model directly; it hands a fully rendered
prompt to a TextGenerationProvider and gets text back. Swapping the
backend (synthetic echo, Ollama, an OpenAI-compatible API) does not
change anything above this interface.
"""

from abc import ABC, abstractmethod
from typing import Optional


class TextGenerationProvider(ABC):
    """
    Abstract interface that all generation backends must satisfy.

    Implementations should:
    1. Set provider_name and model_name in __init__
    2. Implement generate()
    3. Handle their own client/connection lifecycle in initialize/shutdown
    """

    provider_name: str  # e.g. "echo", "ollama"
    model_name: str     # e.g. "llama3.2"

    async def initialize(self) -> None:
        """
        Called once on startup, before the listener accepts connections.

        Set up clients, check connectivity, etc.
        """

    async def shutdown(self) -> None:
        """Called once on shutdown. Close clients and connections."""

    @abstractmethod
    async def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Generate text for a rendered prompt.

        Args:
            prompt: Full prompt text, usually ending with an "assistant:" cue
            temperature: Sampling temperature, backend default when None
            max_tokens: Output cap, backend default when None

        Returns:
            The generated text

        Raises:
            ProviderUnavailable: backend cannot be reached or is not configured
            ProviderError: backend call failed
        """
