"""
Server configuration.

Read from LLM_SERVER_* environment variables (or a local .env file).
Constructed once by the entry point and handed to whatever needs it.
"""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant. Keep responses concise and relevant."


class Settings(BaseSettings):
    """Service settings from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_SERVER_",
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
        protected_namespaces=(),
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 11434

    # Generation backend: "echo", "ollama" or "openai"
    provider: str = "echo"
    model_name: str = "apple.local"
    provider_timeout: float = 120.0  # generation calls can be slow

    # Ollama upstream (must not be this server's own port)
    ollama_host: str = "http://localhost:11435"
    ollama_model: str = "llama3.2"

    # OpenAI-compatible upstream
    openai_api_key: str = ""
    openai_base_url: Optional[str] = None
    openai_model: str = "gpt-4o-mini"

    # Request shaping
    include_system_prompt: bool = False
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    include_history: bool = True

    # Logging
    debug_logging: bool = False
    log_level: str = "info"
    log_path: str = ""  # e.g. /var/log/local-llm-server.log
