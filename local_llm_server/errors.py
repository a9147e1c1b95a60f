"""
Error taxonomy for the gateway.

Every failure is scoped to one connection or one generation attempt;
none of these are meant to take the process down.
"""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class MalformedRequest(GatewayError):
    """HTTP framing could not be parsed (answered with 400 plain text)."""


class DecodeError(GatewayError):
    """Valid HTTP, but the JSON body is invalid or has the wrong shape."""


class RouteNotFound(GatewayError):
    """No handler for (method, path)."""


class ProviderFailure(GatewayError):
    """Base class for text generation failures."""


class ProviderUnavailable(ProviderFailure):
    """The generation backend cannot be reached or is not configured."""


class ProviderError(ProviderFailure):
    """The generation backend was reached but the call failed."""


class BindError(GatewayError):
    """The listener could not bind its port."""
