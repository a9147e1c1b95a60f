from __future__ import annotations

import pytest
from conftest import ScriptedProvider, run

from local_llm_server.context import ContextBudget, ContextManager
from local_llm_server.errors import ProviderError
from local_llm_server.models import Message
from local_llm_server.segments import SegmentStreamer

MESSAGES = [Message(role="user", content="Write a long essay")]


def _streamer(provider, **kwargs) -> SegmentStreamer:  # noqa: ANN001
    return SegmentStreamer(provider, ContextManager(provider), **kwargs)


async def _collect(streamer: SegmentStreamer, **kwargs) -> list[str]:
    return [segment async for segment in streamer.stream(MESSAGES, **kwargs)]


def test_short_second_segment_stops_streaming():
    provider = ScriptedProvider(outputs=["x" * 1000, "y" * 50], summary="essay task")

    emitted = run(_collect(_streamer(provider), segment_chars=900, max_segments=2))

    assert emitted == ["x" * 1000, "y" * 50]
    assert len(emitted[1]) == 50


def test_stops_early_even_when_more_rounds_are_allowed():
    provider = ScriptedProvider(outputs=["x" * 1000, "y" * 50], summary="essay task")

    emitted = run(_collect(_streamer(provider), segment_chars=900, max_segments=4))

    assert len(emitted) == 2
    assert len(provider.calls) == 2


def test_continues_while_output_keeps_pace():
    provider = ScriptedProvider(outputs=["a" * 900, "b" * 900, "c" * 900], summary="essay task")

    emitted = run(_collect(_streamer(provider), segment_chars=900, max_segments=3))

    assert emitted == ["a" * 900, "b" * 900, "c" * 900]


def test_first_round_uses_full_prompt_and_later_rounds_use_summary():
    provider = ScriptedProvider(outputs=["x" * 1000, "y" * 50], summary="essay task")

    run(_collect(_streamer(provider), segment_chars=900, max_segments=2))

    first, second = provider.prompts
    assert first.endswith("\n\nuser: Write a long essay\nassistant:")
    assert "So far, you've written" not in first
    assert second.endswith("Task/context summary (compressed):\nessay task\n\nassistant:")
    assert "(do not repeat, only continue):\n" + "x" * 1000 in second
    assert "Aim for about 900 characters in this segment" in second


def test_empty_segment_is_not_emitted():
    provider = ScriptedProvider(outputs=["", "late"], summary="essay task")

    emitted = run(_collect(_streamer(provider), segment_chars=900, max_segments=4))

    assert emitted == []
    assert len(provider.calls) == 1


def test_continue_ratio_is_configurable():
    provider = ScriptedProvider(outputs=["a" * 1000], summary="essay task")

    emitted = run(_collect(_streamer(provider, continue_ratio=1.2), segment_chars=900, max_segments=4))

    assert emitted == ["a" * 1000]


def test_previous_output_tail_shrinks_to_fit_round_budget():
    provider = ScriptedProvider(outputs=["x" * 625 + "z" * 375, "done"], summary="essay task")
    tight = ContextBudget(max_context_tokens=200, reserve_for_output=0, floor=0)

    run(_collect(_streamer(provider, round_budget=tight), segment_chars=900, max_segments=2))

    second = provider.prompts[1]
    assert "continue):\n" + "z" * 375 + "\n\nTask/context" in second
    tail = second.split("continue):\n", 1)[1].split("\n\n", 1)[0]
    assert tail == "z" * 375


def test_provider_failure_propagates_after_emitted_segments():
    provider = ScriptedProvider(outputs=["a" * 1000, ProviderError("backend crashed")], summary="essay task")
    streamer = _streamer(provider)
    emitted: list[str] = []

    async def consume():
        async for segment in streamer.stream(MESSAGES, segment_chars=900, max_segments=4):
            emitted.append(segment)

    with pytest.raises(ProviderError, match="backend crashed"):
        run(consume())
    assert emitted == ["a" * 1000]
