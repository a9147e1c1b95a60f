"""
Multi-round generation of long-form answers.

A single generation call is bounded by the context window, so a long
answer is produced as a chain of short rounds. Round 1 sees the full
bounded prompt; later rounds see a compact summary of it plus the tail
of what has been written so far, and are told to continue rather than
repeat. Segments are yielded one at a time as they complete; the caller
decides whether to stream or buffer them.
"""

import logging
from typing import AsyncIterator, Optional, Sequence

from .context import (
    MAX_CONTEXT_TOKENS,
    ContextBudget,
    ContextManager,
    approx_token_count,
)
from .llm import TextGenerationProvider
from .models import Message

logger = logging.getLogger(__name__)

SEGMENT_CHARS = 900
MAX_SEGMENTS = 4
CONTINUE_RATIO = 0.6
SO_FAR_TAIL_CHARS = 1500
SO_FAR_TAIL_FLOOR = 200
BASE_SUMMARY_CHARS = 800

# Generation length can't be capped on every backend, so leave more room.
ROUND_BUDGET = ContextBudget(max_context_tokens=MAX_CONTEXT_TOKENS, reserve_for_output=800, floor=1200)


class SegmentStreamer:
    """Chains bounded generation rounds into one long answer."""

    def __init__(
        self,
        provider: TextGenerationProvider,
        context: ContextManager,
        continue_ratio: float = CONTINUE_RATIO,
        round_budget: ContextBudget = ROUND_BUDGET,
    ):
        self.provider = provider
        self.context = context
        self.continue_ratio = continue_ratio
        self.round_budget = round_budget

    def build_instructions(self, round_no: int, segment_chars: int, so_far: str, tail_chars: int) -> str:
        parts = [
            "You are a helpful assistant. Continue the answer succinctly and cohesively.",
            f"Aim for about {segment_chars} characters in this segment; do not repeat prior content.",
        ]
        if round_no > 1:
            tail = so_far[-tail_chars:] if tail_chars > 0 else ""
            parts.append(f"So far, you've written the following (do not repeat, only continue):\n{tail}")
        return "\n".join(parts)

    def should_continue(self, round_no: int, written: int, segment_chars: int) -> bool:
        """Keep going only while output keeps pace with the per-round target."""
        return written >= segment_chars * (round_no - 1) + self.continue_ratio * segment_chars

    async def stream(
        self,
        messages: Sequence[Message],
        temperature: Optional[float] = None,
        segment_chars: int = SEGMENT_CHARS,
        max_segments: int = MAX_SEGMENTS,
    ) -> AsyncIterator[str]:
        """
        Yield generated segments in order.

        Any provider failure propagates and ends the iteration; segments
        already yielded stay with the caller.
        """
        base = await self.context.prepare_chat_prompt(messages, temperature)
        logger.info(
            "[chat.multi] base_prompt_len=%d tokens=%d seg_chars=%d max_seg=%d",
            len(base.text), base.tokens, segment_chars, max_segments,
        )
        # Re-sending the full prompt every round would overflow the budget.
        base_summary = await self.context.summarize_text(base.text, BASE_SUMMARY_CHARS, temperature)
        budget = self.round_budget.budget

        so_far = ""
        for round_no in range(1, max_segments + 1):
            if round_no == 1:
                prompt = base.text
            else:
                prompt = f"Task/context summary (compressed):\n{base_summary}\n\nassistant:"

            tail_chars = SO_FAR_TAIL_CHARS
            instructions = self.build_instructions(round_no, segment_chars, so_far, tail_chars)
            while (
                approx_token_count(instructions + "\n\n" + prompt) > budget
                and tail_chars > SO_FAR_TAIL_FLOOR
            ):
                tail_chars = max(SO_FAR_TAIL_FLOOR, tail_chars // 2)
                instructions = self.build_instructions(round_no, segment_chars, so_far, tail_chars)

            segment = await self.provider.generate(instructions + "\n\n" + prompt, temperature=temperature)
            logger.info("[chat.multi] round=%d seg_len=%d", round_no, len(segment))
            if segment:
                so_far += segment
                yield segment

            if not self.should_continue(round_no, len(so_far), segment_chars):
                break
