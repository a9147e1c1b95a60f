"""
Pydantic models for the OpenAI- and Ollama-compatible wire formats.

Request models are deliberately permissive: clients in the wild send
message content as a string, a list of strings, or a list of structured
parts, and legacy completion clients send the prompt as a list.
"""

import json
from typing import Any, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import DecodeError

T = TypeVar("T", bound=BaseModel)


def _is_content_part(item: Any) -> bool:
    """True for an object whose optional `type` and `text` are strings."""
    if not isinstance(item, dict):
        return False
    return all(item.get(key) is None or isinstance(item.get(key), str) for key in ("type", "text"))


def decode_content(value: Any) -> str:
    """
    Flatten message content, trying each accepted shape in order.

    1. plain string
    2. array of strings, joined with newlines
    3. array of structured parts, text values concatenated
    4. a single structured part
    Anything else decodes to an empty string.
    """
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return "\n".join(value)
    if isinstance(value, list) and all(_is_content_part(item) for item in value):
        return "".join(item["text"] for item in value if item.get("text") is not None)
    if _is_content_part(value):
        return value.get("text") or ""
    return ""


# =============================================================================
# OpenAI chat completions
# =============================================================================

class Message(BaseModel):
    """A single message in a conversation."""
    role: str = "user"  # "system", "user", or "assistant"
    content: str = ""

    @field_validator("role", mode="before")
    @classmethod
    def _role(cls, value: Any) -> str:
        return value if isinstance(value, str) else "user"

    @field_validator("content", mode="before")
    @classmethod
    def _content(cls, value: Any) -> str:
        return decode_content(value)


class ChatCompletionRequest(BaseModel):
    """Request body for POST /v1/chat/completions."""
    model: str
    messages: list[Message]
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: Optional[bool] = None
    multi_segment: Optional[bool] = None


class ChoiceMessage(BaseModel):
    role: str
    content: str


class ChatChoice(BaseModel):
    index: int
    message: ChoiceMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """Response body for POST /v1/chat/completions."""
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: list[ChatChoice]


# =============================================================================
# OpenAI text completions
# =============================================================================

class TextCompletionRequest(BaseModel):
    """Request body for POST /v1/completions."""
    model: str
    prompt: str = ""
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: Optional[bool] = None

    @field_validator("prompt", mode="before")
    @classmethod
    def _prompt(cls, value: Any) -> str:
        if isinstance(value, str):
            return value
        if isinstance(value, list) and all(isinstance(item, str) for item in value):
            return "\n\n".join(value)
        return ""

    # Legacy clients send odd types here; treat them as absent.
    @field_validator("temperature", mode="before")
    @classmethod
    def _temperature(cls, value: Any) -> Optional[float]:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return value
        return None

    @field_validator("max_tokens", mode="before")
    @classmethod
    def _max_tokens(cls, value: Any) -> Optional[int]:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return None

    @field_validator("stream", mode="before")
    @classmethod
    def _stream(cls, value: Any) -> Optional[bool]:
        return value if isinstance(value, bool) else None


class TextChoice(BaseModel):
    text: str
    index: int
    logprobs: Optional[str] = None
    finish_reason: Optional[str] = None


class TextCompletionResponse(BaseModel):
    """Response body for POST /v1/completions."""
    id: str
    object: str = "text_completion"
    created: int
    model: str
    choices: list[TextChoice]


# =============================================================================
# OpenAI models inventory
# =============================================================================

class ModelCard(BaseModel):
    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelList(BaseModel):
    object: str = "list"
    data: list[ModelCard]


# =============================================================================
# Ollama
# =============================================================================

class OllamaMessage(BaseModel):
    role: str
    content: str


class OllamaChatOptions(BaseModel):
    temperature: Optional[float] = None
    num_predict: Optional[int] = None


class OllamaChatRequest(BaseModel):
    """Request body for POST /api/chat."""
    model: str
    messages: list[OllamaMessage]
    stream: Optional[bool] = None
    options: Optional[OllamaChatOptions] = None


class OllamaChatResponse(BaseModel):
    """Response body for POST /api/chat."""
    model: str
    created_at: str  # ISO 8601
    message: OllamaMessage
    done: bool = True
    total_duration: Optional[int] = None  # nanoseconds


class OllamaTagDetails(BaseModel):
    format: Optional[str] = None
    family: Optional[str] = None
    families: Optional[list[str]] = None
    parameter_size: Optional[str] = None
    quantization_level: Optional[str] = None


class OllamaTagModel(BaseModel):
    name: str
    modified_at: str
    size: Optional[int] = None
    digest: Optional[str] = None
    details: Optional[OllamaTagDetails] = None


class OllamaTagsResponse(BaseModel):
    """Response body for GET /api/tags."""
    models: list[OllamaTagModel] = Field(default_factory=list)


# =============================================================================
# Decoding
# =============================================================================

def decode_body(model_cls: Type[T], body: bytes) -> T:
    """
    Decode a JSON request body into `model_cls`.

    Raises:
        DecodeError: body is not JSON or does not match the model.
    """
    try:
        data = json.loads(body or b"null")
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Invalid JSON body: {e}") from e

    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        )
        raise DecodeError(f"Invalid {model_cls.__name__}: {details}") from e
