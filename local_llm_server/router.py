"""
Request router.

Maps (method, path) to a handler and always produces exactly one
HTTPResponse. Decode and provider failures become 400 JSON error
envelopes; unmatched routes become a plain-text 404.
"""

import logging

from .errors import DecodeError, ProviderFailure, RouteNotFound
from .models import (
    ChatCompletionRequest,
    OllamaChatRequest,
    TextCompletionRequest,
    decode_body,
)
from .service import ChatService
from .wire import HTTPRequest, HTTPResponse, error_response, json_response, text_response

logger = logging.getLogger(__name__)

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
    "Access-Control-Max-Age": "600",
}

MODELS_PREFIX = "/v1/models/"


class Router:
    """Dispatches framed requests to the chat service."""

    def __init__(self, service: ChatService):
        self.service = service

    async def handle(self, request: HTTPRequest) -> HTTPResponse:
        method = request.method.upper()
        path = request.route_path

        if method == "OPTIONS":
            return HTTPResponse(status=204, headers=dict(CORS_PREFLIGHT_HEADERS), body=b"")

        try:
            return await self._dispatch(method, path, request)
        except RouteNotFound:
            logger.debug("No route for %s %s", method, path)
            return text_response(404, "Not Found", {"Access-Control-Allow-Origin": "*"})
        except DecodeError as e:
            logger.warning("Bad request body for %s %s: %s", method, path, e)
            return error_response(400, str(e))
        except ProviderFailure as e:
            logger.error("Generation failed for %s %s: %s", method, path, e)
            return error_response(400, str(e))

    async def _dispatch(self, method: str, path: str, request: HTTPRequest) -> HTTPResponse:
        if method == "POST" and path == "/v1/chat/completions":
            chat = decode_body(ChatCompletionRequest, request.body)
            response = await self.service.handle_chat_completion(chat)
            return json_response(200, response.model_dump())

        if method == "POST" and path == "/v1/completions":
            completion = decode_body(TextCompletionRequest, request.body)
            response = await self.service.handle_completion(completion)
            return json_response(200, response.model_dump())

        if method == "GET" and path == "/v1/models":
            return json_response(200, self.service.list_models().model_dump())

        if method == "GET" and path.startswith(MODELS_PREFIX) and len(path) > len(MODELS_PREFIX):
            model_id = path[len(MODELS_PREFIX):]
            model = self.service.get_model(model_id)
            if model is None:
                return error_response(404, f"Model '{model_id}' not found")
            return json_response(200, model.model_dump())

        if method == "POST" and path == "/api/chat":
            ollama_chat = decode_body(OllamaChatRequest, request.body)
            response = await self.service.handle_ollama_chat(ollama_chat)
            return json_response(200, response.model_dump())

        if method == "GET" and path == "/api/tags":
            return json_response(200, self.service.list_ollama_tags().model_dump())

        raise RouteNotFound(f"{method} {path}")
