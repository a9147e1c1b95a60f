"""
Chat service: bridges OpenAI/Ollama-compatible requests to a provider.

One instance is created at startup and passed to the router.
"""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from .config import Settings
from .context import ContextManager
from .errors import ProviderFailure
from .llm import TextGenerationProvider
from .models import (
    ChatChoice,
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChoiceMessage,
    Message,
    ModelCard,
    ModelList,
    OllamaChatRequest,
    OllamaChatResponse,
    OllamaMessage,
    OllamaTagDetails,
    OllamaTagModel,
    OllamaTagsResponse,
    TextChoice,
    TextCompletionRequest,
    TextCompletionResponse,
)
from .segments import SegmentStreamer

logger = logging.getLogger(__name__)

MODEL_ID = "apple.local"
MODEL_OWNER = "system"
OLLAMA_TAG = "apple.local:latest"
OLLAMA_FAMILY = "apple-intelligence"


def iso8601(epoch: int) -> str:
    """Epoch seconds as an ISO 8601 UTC timestamp, e.g. 2025-09-14T12:00:00Z."""
    return datetime.fromtimestamp(epoch, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class ChatService:
    """Runs the chat, text completion and Ollama chat pipelines."""

    def __init__(
        self,
        provider: TextGenerationProvider,
        settings: Optional[Settings] = None,
        context: Optional[ContextManager] = None,
        streamer: Optional[SegmentStreamer] = None,
    ):
        self.provider = provider
        self.settings = settings or Settings()
        self.context = context or ContextManager(provider)
        self.streamer = streamer or SegmentStreamer(provider, self.context)
        self.created_epoch = int(time.time())

    # =========================================================================
    # OpenAI chat completions
    # =========================================================================

    def shape_messages(self, messages: list[Message]) -> list[Message]:
        """Apply the system prompt and history settings."""
        shaped = list(messages)
        if not self.settings.include_history:
            last_user = next((m for m in reversed(shaped) if m.role == "user"), None)
            shaped = [m for m in shaped if m.role == "system"]
            if last_user is not None:
                shaped.append(last_user)
        if self.settings.include_system_prompt and not any(m.role == "system" for m in shaped):
            shaped.insert(0, Message(role="system", content=self.settings.system_prompt))
        return shaped

    async def handle_chat_completion(self, request: ChatCompletionRequest) -> ChatCompletionResponse:
        """
        Answer an OpenAI chat completion request.

        Raises:
            ProviderFailure: generation failed (for multi-segment requests,
                only when no segment was produced)
        """
        messages = self.shape_messages(request.messages)

        if request.multi_segment:
            output = await self._generate_segments(messages, request.temperature)
        else:
            prepared = await self.context.prepare_chat_prompt(messages, request.temperature)
            logger.info(
                "[chat] model=%s messages=%d prompt_len=%d",
                request.model, len(messages), len(prepared.text),
            )
            output = await self.provider.generate(
                prepared.text,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        logger.info("[chat] output_len=%d", len(output))

        return ChatCompletionResponse(
            id="chatcmpl_" + uuid.uuid4().hex,
            object="chat.completion",
            created=int(time.time()),
            model=request.model,
            choices=[
                ChatChoice(
                    index=0,
                    message=ChoiceMessage(role="assistant", content=output),
                    finish_reason="stop",
                )
            ],
        )

    async def _generate_segments(self, messages: list[Message], temperature: Optional[float]) -> str:
        """Buffer multi-round output; a late failure is reported inline."""
        segments: list[str] = []
        try:
            async for segment in self.streamer.stream(messages, temperature=temperature):
                segments.append(segment)
        except ProviderFailure as e:
            if not segments:
                raise
            logger.warning("[chat.multi] interrupted after %d segments: %s", len(segments), e)
            segments.append(f"\n\n[generation interrupted: {e}]")
        return "".join(segments)

    # =========================================================================
    # OpenAI text completions
    # =========================================================================

    async def handle_completion(self, request: TextCompletionRequest) -> TextCompletionResponse:
        """Answer an OpenAI text completion request; the prompt is sent as is."""
        logger.info("[text] model=%s prompt_len=%d", request.model, len(request.prompt))
        output = await self.provider.generate(
            request.prompt,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
        )
        logger.info("[text] output_len=%d", len(output))

        return TextCompletionResponse(
            id="cmpl_" + uuid.uuid4().hex,
            object="text_completion",
            created=int(time.time()),
            model=request.model,
            choices=[TextChoice(text=output, index=0, logprobs=None, finish_reason="stop")],
        )

    # =========================================================================
    # Ollama chat
    # =========================================================================

    async def handle_ollama_chat(self, request: OllamaChatRequest) -> OllamaChatResponse:
        """Map an Ollama chat request onto the chat completion pipeline."""
        start = time.perf_counter_ns()
        options = request.options
        chat_request = ChatCompletionRequest(
            model=request.model,
            messages=[Message(role=m.role, content=m.content) for m in request.messages],
            temperature=options.temperature if options else None,
            max_tokens=options.num_predict if options else None,
            stream=False,
        )
        response = await self.handle_chat_completion(chat_request)

        choice = response.choices[0] if response.choices else None
        return OllamaChatResponse(
            model=response.model,
            created_at=iso8601(response.created),
            message=OllamaMessage(
                role=choice.message.role if choice else "assistant",
                content=choice.message.content if choice else "",
            ),
            done=True,
            total_duration=time.perf_counter_ns() - start,
        )

    # =========================================================================
    # Model inventory
    # =========================================================================

    def available_models(self) -> list[ModelCard]:
        # A single stable id keeps client configuration working.
        return [
            ModelCard(id=MODEL_ID, object="model", created=self.created_epoch, owned_by=MODEL_OWNER)
        ]

    def list_models(self) -> ModelList:
        return ModelList(object="list", data=self.available_models())

    def get_model(self, model_id: str) -> Optional[ModelCard]:
        return next((m for m in self.available_models() if m.id == model_id), None)

    def list_ollama_tags(self) -> OllamaTagsResponse:
        model = OllamaTagModel(
            name=OLLAMA_TAG,
            modified_at=iso8601(self.created_epoch),
            size=None,
            digest=None,
            details=OllamaTagDetails(
                format="system",
                family=OLLAMA_FAMILY,
                families=[OLLAMA_FAMILY],
                parameter_size=None,
                quantization_level=None,
            ),
        )
        return OllamaTagsResponse(models=[model])
