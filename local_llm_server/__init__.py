"""
Local LLM Server - OpenAI/Ollama-compatible HTTP API over a text generation provider.

This package provides:
- A minimal asyncio HTTP/1.1 server (one request per connection, CORS)
- OpenAI (/v1/...) and Ollama (/api/...) compatible routes
- Context-window management with recursive summarization
- Multi-segment long-form generation
- Pluggable generation providers (echo, Ollama, OpenAI)
"""

from .config import Settings
from .context import ContextBudget, ContextManager, PreparedPrompt
from .errors import (
    BindError,
    DecodeError,
    GatewayError,
    MalformedRequest,
    ProviderError,
    ProviderFailure,
    ProviderUnavailable,
    RouteNotFound,
)
from .llm import EchoProvider, TextGenerationProvider, create_provider
from .router import Router
from .segments import SegmentStreamer
from .server import ListenerState, LocalHTTPServer
from .service import ChatService
from .wire import HTTPRequest, HTTPResponse

__all__ = [
    # Config
    "Settings",
    # HTTP
    "HTTPRequest",
    "HTTPResponse",
    "LocalHTTPServer",
    "ListenerState",
    "Router",
    # Generation
    "TextGenerationProvider",
    "EchoProvider",
    "create_provider",
    "ChatService",
    "ContextManager",
    "ContextBudget",
    "PreparedPrompt",
    "SegmentStreamer",
    # Errors
    "GatewayError",
    "MalformedRequest",
    "DecodeError",
    "RouteNotFound",
    "ProviderFailure",
    "ProviderUnavailable",
    "ProviderError",
    "BindError",
]
