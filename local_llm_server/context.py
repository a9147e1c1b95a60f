"""
Context-window management for chat prompts.

Chat conversations are rendered into a single prompt of `role: content`
lines. When that prompt would overflow the model's context window, the
most recent turns are kept verbatim and everything older is compressed
into a summary by the provider itself. If the provider cannot summarize,
a naive sentence extract is used instead; summarization failures never
reach the HTTP caller.

Token counts are estimated as ceil(chars / 4).
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

from .errors import ProviderFailure
from .llm import TextGenerationProvider
from .models import Message

logger = logging.getLogger(__name__)

MAX_CONTEXT_TOKENS = 4000
RESERVE_FOR_OUTPUT = 512
BUDGET_FLOOR = 1000

KEEP_RECENT = 6
SUMMARY_INPUT_MAX_CHARS = 6000
SUMMARY_TARGET_CHARS = 1500
TIGHT_SUMMARY_TARGET_CHARS = 800

SUMMARY_HEADER = "system: Conversation summary (compressed): \n"

FIT_FULL = "full"
FIT_SUMMARIZED = "summarized"
FIT_SUMMARY_TIGHT = "summary-tight"


@dataclass(frozen=True)
class ContextBudget:
    """Input token budget for one generation call."""
    max_context_tokens: int = MAX_CONTEXT_TOKENS
    reserve_for_output: int = RESERVE_FOR_OUTPUT
    floor: int = BUDGET_FLOOR

    @property
    def budget(self) -> int:
        return max(self.floor, self.max_context_tokens - self.reserve_for_output)


@dataclass(frozen=True)
class PreparedPrompt:
    """A prompt that fits the budget, and how it was made to fit."""
    text: str
    fit: str
    tokens: int


def approx_token_count(text: str) -> int:
    """Rough token estimate: ~4 chars per token, never less than 1."""
    return max(1, math.ceil(len(text) / 4))


def build_prompt(messages: Sequence[Message]) -> str:
    """Render messages as `role: content` lines followed by an assistant cue."""
    parts = [f"{m.role}: {m.content}" for m in messages]
    parts.append("assistant:")
    return "\n".join(parts)


def clamp_for_summarization(text: str, max_chars: int = SUMMARY_INPUT_MAX_CHARS) -> str:
    """Keep a head and a tail slice so both early and late context survive."""
    if len(text) <= max_chars:
        return text
    half = max_chars // 2
    head = text[:half]
    tail = text[len(text) - (max_chars - half):]
    return f"{head}\n…\n{tail}"


def naive_extract(text: str, target_chars: int) -> str:
    """First 8 and last 4 sentence fragments, clamped to target_chars."""
    sentences = [s for s in text.split(".") if s]
    head = ". ".join(sentences[:8])
    tail = ". ".join(sentences[-4:])
    combined = f"{head}. … {tail}."
    return combined[:target_chars]


class ContextManager:
    """Keeps chat prompts inside the context budget."""

    def __init__(self, provider: TextGenerationProvider, budget: Optional[ContextBudget] = None):
        self.provider = provider
        self.budget = budget or ContextBudget()

    async def summarize_text(
        self,
        text: str,
        target_chars: int,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Summarize text with the provider; fall back to a naive extract.

        The result is hard-clamped to target_chars and never re-summarized.
        """
        instruction = (
            f"Summarize the following content in under {target_chars} characters, "
            "preserving key technical details, APIs, and decisions relevant to the "
            "user's most recent request. Use concise bullet points if helpful."
        )
        prompt = f"Instructions:\n{instruction}\n\nContent to summarize:\n\n{text}"
        try:
            out = await self.provider.generate(prompt, temperature=temperature)
        except ProviderFailure as e:
            logger.info("[chat.ctx] summarization unavailable, using extract: %s", e)
            return naive_extract(text, target_chars)
        return out[:target_chars]

    async def prepare_chat_prompt(
        self,
        messages: Sequence[Message],
        temperature: Optional[float] = None,
    ) -> PreparedPrompt:
        """Build a prompt within budget, summarizing older turns when needed."""
        budget = self.budget.budget
        full = build_prompt(messages)
        full_tokens = approx_token_count(full)
        if full_tokens <= budget:
            logger.info(
                "[chat.ctx] fit=full tokens=%d budget=%d messages=%d",
                full_tokens, budget, len(messages),
            )
            return PreparedPrompt(full, FIT_FULL, full_tokens)

        keep = min(KEEP_RECENT, len(messages))
        recent = list(messages[len(messages) - keep:])
        older = list(messages[:len(messages) - keep])

        summary = ""
        if older:
            clamped = clamp_for_summarization(build_prompt(older))
            summary = await self.summarize_text(clamped, SUMMARY_TARGET_CHARS, temperature)

        recent_text = build_prompt(recent)
        compact = self._compose(summary, recent_text)
        compact_tokens = approx_token_count(compact)
        logger.info(
            "[chat.ctx] fit=summarized tokens=%d budget=%d kept_recent=%d older_summarized=%d",
            compact_tokens, budget, len(recent), len(older),
        )

        if compact_tokens > budget and summary:
            tighter = await self.summarize_text(summary, TIGHT_SUMMARY_TARGET_CHARS, temperature)
            rebuilt = self._compose(tighter, recent_text)
            tokens = approx_token_count(rebuilt)
            logger.info(
                "[chat.ctx] fit=summary-tight tokens=%d budget=%d kept_recent=%d",
                tokens, budget, len(recent),
            )
            return PreparedPrompt(rebuilt, FIT_SUMMARY_TIGHT, tokens)

        return PreparedPrompt(compact, FIT_SUMMARIZED, compact_tokens)

    @staticmethod
    def _compose(summary: str, recent_text: str) -> str:
        parts = []
        if summary:
            parts.append(SUMMARY_HEADER + summary)
        parts.append(recent_text)
        return "\n".join(parts)
