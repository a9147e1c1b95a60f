from __future__ import annotations

import json

import httpx
import pytest
from conftest import make_settings, post_json, response_json, run

from local_llm_server.errors import ProviderError, ProviderUnavailable
from local_llm_server.llm import EchoProvider, create_provider
from local_llm_server.llm.echo_provider import last_prompt_line
from local_llm_server.llm.ollama_provider import OllamaProvider
from local_llm_server.llm.openai_provider import OpenAIProvider
from local_llm_server.router import Router
from local_llm_server.service import ChatService


def _ollama(handler) -> OllamaProvider:  # noqa: ANN001
    return OllamaProvider("http://ollama.test:11435/", "llama3.2", transport=httpx.MockTransport(handler))


def _openai(handler) -> OpenAIProvider:  # noqa: ANN001
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAIProvider(
        api_key="sk-test",
        model="gpt-4o-mini",
        base_url="http://openai.test/v1",
        max_retries=0,
        http_client=client,
    )


def _completion(choices: list) -> dict:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "created": 1700000000,
        "model": "gpt-4o-mini",
        "choices": choices,
        "usage": {"prompt_tokens": 4, "completion_tokens": 2, "total_tokens": 6},
    }


async def _generate(provider, prompt: str, **kwargs) -> str:  # noqa: ANN001
    await provider.initialize()
    try:
        return await provider.generate(prompt, **kwargs)
    finally:
        await provider.shutdown()


def test_echo_provider_echoes_last_prompt_line():
    output = run(EchoProvider().generate("system: be brief\nuser: what time is it?\nassistant:"))
    assert output.startswith("(Local fallback)")
    assert output.endswith("here's an echo: user: what time is it?")


def test_last_prompt_line_skips_assistant_cue():
    assert last_prompt_line("user: hi\nassistant:") == "user: hi"
    assert last_prompt_line("assistant:") == ""
    assert last_prompt_line("plain prompt") == "plain prompt"


def test_ollama_generate_sends_prompt_and_options():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": "llama3.2:latest"}]})
        seen["path"] = request.url.path
        seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "generated text", "done": True, "eval_count": 3})

    output = run(_generate(_ollama(handler), "user: hi\nassistant:", temperature=0.2, max_tokens=5))

    assert output == "generated text"
    assert seen["path"] == "/api/generate"
    assert seen["payload"] == {
        "model": "llama3.2",
        "prompt": "user: hi\nassistant:",
        "stream": False,
        "options": {"temperature": 0.2, "num_predict": 5},
    }


def test_ollama_omits_unset_options():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/generate":
            seen["payload"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "ok"})

    run(_generate(_ollama(handler), "prompt"))

    assert seen["payload"]["options"] == {}


def test_ollama_connection_refused_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        run(_generate(_ollama(handler), "prompt"))


def test_ollama_http_error_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": []})
        return httpx.Response(500, text="model crashed")

    with pytest.raises(ProviderError, match="HTTP 500"):
        run(_generate(_ollama(handler), "prompt"))


def test_ollama_malformed_reply_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    with pytest.raises(ProviderError):
        run(_generate(_ollama(handler), "prompt"))


def test_ollama_without_initialize_is_unavailable():
    provider = OllamaProvider("http://ollama.test", "llama3.2")
    with pytest.raises(ProviderUnavailable):
        run(provider.generate("prompt"))


def test_openai_without_api_key_is_unavailable():
    provider = OpenAIProvider(api_key="", model="gpt-4o-mini")
    with pytest.raises(ProviderUnavailable):
        run(_generate(provider, "prompt"))


def test_factory_builds_configured_provider():
    echo = create_provider(make_settings(provider="echo", model_name="apple.local"))
    assert isinstance(echo, EchoProvider)
    assert echo.model_name == "apple.local"

    ollama = create_provider(make_settings(provider="Ollama", ollama_model="qwen2.5"))
    assert isinstance(ollama, OllamaProvider)
    assert ollama.model_name == "qwen2.5"

    openai = create_provider(make_settings(provider="openai", openai_model="gpt-4o"))
    assert isinstance(openai, OpenAIProvider)
    assert openai.model_name == "gpt-4o"


def test_factory_rejects_unknown_provider():
    with pytest.raises(ValueError, match="Unknown provider"):
        create_provider(make_settings(provider="mystery"))


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("LLM_SERVER_PORT", "9999")
    monkeypatch.setenv("LLM_SERVER_INCLUDE_HISTORY", "false")
    settings = make_settings()
    assert settings.port == 9999
    assert settings.include_history is False
    assert settings.provider == "echo"


def test_openai_generate_sends_prompt_as_user_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["payload"] = json.loads(request.content)
        choice = {"index": 0, "message": {"role": "assistant", "content": "hello back"}, "finish_reason": "stop"}
        return httpx.Response(200, json=_completion([choice]))

    output = run(_generate(_openai(handler), "user: hi\nassistant:", temperature=0.4, max_tokens=12))

    assert output == "hello back"
    assert seen["path"] == "/v1/chat/completions"
    assert seen["payload"]["model"] == "gpt-4o-mini"
    assert seen["payload"]["messages"] == [{"role": "user", "content": "user: hi\nassistant:"}]
    assert seen["payload"]["temperature"] == 0.4
    assert seen["payload"]["max_tokens"] == 12


def test_openai_connection_failure_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ProviderUnavailable):
        run(_generate(_openai(handler), "prompt"))


def test_openai_api_error_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "bad model", "type": "invalid_request_error"}})

    with pytest.raises(ProviderError, match="OpenAI error"):
        run(_generate(_openai(handler), "prompt"))


def test_openai_empty_choices_is_provider_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion([]))

    with pytest.raises(ProviderError, match="no choices"):
        run(_generate(_openai(handler), "prompt"))


def test_openai_empty_choices_reaches_client_as_error_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=_completion([]))

    async def scenario():
        provider = _openai(handler)
        await provider.initialize()
        try:
            router = Router(ChatService(provider, make_settings()))
            payload = {"model": "gpt-4o-mini", "messages": [{"role": "user", "content": "hi"}]}
            return await router.handle(post_json("/v1/chat/completions", payload))
        finally:
            await provider.shutdown()

    response = run(scenario())

    assert response.status == 400
    assert response_json(response) == {"error": {"message": "OpenAI returned no choices"}}
