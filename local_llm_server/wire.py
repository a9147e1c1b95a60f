"""
HTTP/1.1 wire codec.

Only what the gateway needs: parse a request head, serialize a response.
There is no keep-alive and no chunked transfer coding; every response
carries an explicit Content-Length and the connection is closed after it.
"""

import json
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Optional

from .errors import MalformedRequest

HEADER_TERMINATOR = b"\r\n\r\n"
CRLF = "\r\n"


@dataclass(frozen=True)
class HTTPRequest:
    """A fully framed request. Header keys keep the casing the client sent."""
    method: str
    path: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def route_path(self) -> str:
        """Path without the query string."""
        return self.path.split("?", 1)[0]


@dataclass(frozen=True)
class HTTPResponse:
    """A response ready to be written to the socket."""
    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    def serialize(self) -> bytes:
        lines = [
            f"HTTP/1.1 {self.status} {reason_phrase(self.status)}",
            f"Content-Length: {len(self.body)}",
        ]
        for key, value in self.headers.items():
            # Content-Length is always derived from the body
            if key.lower() == "content-length":
                continue
            lines.append(f"{key}: {value}")
        head = CRLF.join(lines) + CRLF + CRLF
        return head.encode("utf-8") + self.body


def reason_phrase(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown"


def parse_request_head(head: bytes) -> tuple[str, str, dict[str, str]]:
    """
    Parse the bytes before the blank line into (method, path, headers).

    Raises:
        MalformedRequest: head is not UTF-8 or the request line has
            fewer than two space-delimited tokens.
    """
    try:
        text = head.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedRequest("Request head is not valid UTF-8") from e

    lines = text.split(CRLF)
    tokens = [t for t in lines[0].split(" ") if t]
    if len(tokens) < 2:
        raise MalformedRequest(f"Invalid request line: {lines[0]!r}")

    headers: dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            continue
        key, value = line.split(":", 1)
        headers[key.strip()] = value.strip()

    return tokens[0], tokens[1], headers


def find_header(headers: dict[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup; an exact-case key wins."""
    if name in headers:
        return headers[name]
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def declared_content_length(headers: dict[str, str]) -> Optional[int]:
    """Return the Content-Length header as an int, or None when absent."""
    raw = find_header(headers, "Content-Length")
    if raw is None:
        return None
    try:
        length = int(raw)
    except ValueError as e:
        raise MalformedRequest(f"Invalid Content-Length: {raw!r}") from e
    if length < 0:
        raise MalformedRequest(f"Negative Content-Length: {length}")
    return length


# =============================================================================
# Response helpers
# =============================================================================

def json_response(status: int, payload: Any, headers: Optional[dict[str, str]] = None) -> HTTPResponse:
    body = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    all_headers = {
        "Content-Type": "application/json",
        "Access-Control-Allow-Origin": "*",
    }
    if headers:
        all_headers.update(headers)
    return HTTPResponse(status=status, headers=all_headers, body=body)


def error_response(status: int, message: str) -> HTTPResponse:
    """JSON error envelope used by every matched route."""
    return json_response(status, {"error": {"message": message}})


def text_response(status: int, text: str, headers: Optional[dict[str, str]] = None) -> HTTPResponse:
    all_headers = {"Content-Type": "text/plain"}
    if headers:
        all_headers.update(headers)
    return HTTPResponse(status=status, headers=all_headers, body=text.encode("utf-8"))
