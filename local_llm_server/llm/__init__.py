"""
Text generation providers.

Everything above this package only sees TextGenerationProvider.generate().
"""
from .base import TextGenerationProvider
from .echo_provider import EchoProvider
from .factory import create_provider

__all__ = ["TextGenerationProvider", "EchoProvider", "create_provider"]
