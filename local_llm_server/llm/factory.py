"""
Factory for creating provider instances.
"""
import logging

from ..config import Settings
from .base import TextGenerationProvider

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("echo", "ollama", "openai")


def create_provider(settings: Settings) -> TextGenerationProvider:
    """
    Build the configured provider.

    The provider is selected by settings.provider (LLM_SERVER_PROVIDER).
    Supported: "echo", "ollama", "openai".
    """
    provider = settings.provider.lower()

    logger.info("Initializing provider: %s", provider)

    if provider == "echo":
        from .echo_provider import EchoProvider
        return EchoProvider(model_name=settings.model_name)

    if provider == "ollama":
        from .ollama_provider import OllamaProvider
        return OllamaProvider(
            base_url=settings.ollama_host,
            model=settings.ollama_model,
            timeout=settings.provider_timeout,
        )

    if provider == "openai":
        from .openai_provider import OpenAIProvider
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.provider_timeout,
        )

    raise ValueError(
        f"Unknown provider: {provider}. "
        f"Supported providers: {', '.join(SUPPORTED_PROVIDERS)}"
    )
