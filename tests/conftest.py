from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import pytest

from local_llm_server.config import Settings
from local_llm_server.errors import ProviderUnavailable
from local_llm_server.llm import EchoProvider, TextGenerationProvider
from local_llm_server.models import Message
from local_llm_server.router import Router
from local_llm_server.service import ChatService
from local_llm_server.wire import HTTPRequest

SUMMARY_PREFIX = "Instructions:\nSummarize"


class ScriptedProvider(TextGenerationProvider):
    """Returns queued outputs in order. Summarization prompts get `summary`."""

    def __init__(self, outputs: Optional[list[Any]] = None, summary: str = "summary of earlier turns") -> None:
        self.provider_name = "scripted"
        self.model_name = "scripted"
        self.outputs = list(outputs or [])
        self.summary = summary
        self.calls: list[dict[str, Any]] = []
        self.summary_prompts: list[str] = []

    @property
    def prompts(self) -> list[str]:
        return [call["prompt"] for call in self.calls]

    async def generate(self, prompt, temperature=None, max_tokens=None):  # noqa: ANN001
        if prompt.startswith(SUMMARY_PREFIX):
            self.summary_prompts.append(prompt)
            return self.summary
        self.calls.append({"prompt": prompt, "temperature": temperature, "max_tokens": max_tokens})
        out = self.outputs.pop(0)
        if isinstance(out, Exception):
            raise out
        return out


class UnavailableProvider(TextGenerationProvider):
    """Every call fails as if the model were not installed."""

    def __init__(self) -> None:
        self.provider_name = "offline"
        self.model_name = "offline"
        self.calls = 0

    async def generate(self, prompt, temperature=None, max_tokens=None):  # noqa: ANN001
        self.calls += 1
        raise ProviderUnavailable("offline")


def run(coro):
    return asyncio.run(coro)


def make_settings(**overrides: Any) -> Settings:
    return Settings(_env_file=None, **overrides)


def make_messages(count: int, content: str = "hello there") -> list[Message]:
    roles = ("user", "assistant")
    return [Message(role=roles[i % 2], content=f"{content} {i}") for i in range(count)]


def post_json(path: str, payload: Any) -> HTTPRequest:
    body = json.dumps(payload).encode("utf-8")
    return HTTPRequest(
        method="POST",
        path=path,
        headers={"Content-Type": "application/json", "Content-Length": str(len(body))},
        body=body,
    )


def get(path: str) -> HTTPRequest:
    return HTTPRequest(method="GET", path=path, headers={}, body=b"")


def response_json(response) -> Any:  # noqa: ANN001
    return json.loads(response.body.decode("utf-8"))


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def echo_provider() -> EchoProvider:
    return EchoProvider()


@pytest.fixture
def echo_service(echo_provider: EchoProvider, settings: Settings) -> ChatService:
    return ChatService(echo_provider, settings)


@pytest.fixture
def router(echo_service: ChatService) -> Router:
    return Router(echo_service)
