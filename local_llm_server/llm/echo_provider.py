"""
Synthetic fallback provider.

Used when no on-device or upstream model is available. Returns a
deterministic echo of the last prompt line so clients still get a
well-formed answer.
"""

from typing import Optional

from .base import TextGenerationProvider

ASSISTANT_CUE = "assistant:"


class EchoProvider(TextGenerationProvider):
    """Provider that echoes the prompt back. Never fails."""

    def __init__(self, model_name: str = "apple.local"):
        self.provider_name = "echo"
        self.model_name = model_name

    async def generate(
        self,
        prompt: str,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        return (
            "(Local fallback) on-device model unavailable: returning a synthetic response. "
            f"Based on your prompt, here's an echo: {last_prompt_line(prompt)}"
        )


def last_prompt_line(prompt: str) -> str:
    """Last non-empty line of the prompt, skipping the bare assistant cue."""
    for line in reversed(prompt.split("\n")):
        text = line.replace(ASSISTANT_CUE, "").strip()
        if text:
            return text
    return ""
