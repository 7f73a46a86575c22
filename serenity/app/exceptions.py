"""Custom exceptions for the proxy.

Each exception carries the HTTP status it maps to; a single handler in
``serenity.app.main`` renders them as ``{"error": message}``.
"""


class ProxyException(Exception):
    """Base class for proxy exceptions with HTTP status code."""
    status_code: int = 500

    def __init__(self, message: str = "Proxy error"):
        self.message = message
        super().__init__(message)


class AuthenticationError(ProxyException):
    """Raised when the x-app-secret header does not match.

    Maps to HTTP 401 Unauthorized.
    """
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class MethodNotAllowedError(ProxyException):
    """Raised for anything other than POST (and the OPTIONS preflight)."""
    status_code = 405

    def __init__(self, message: str = "POST only"):
        super().__init__(message)


class RateLimitExceededError(ProxyException):
    """Raised when the client's fixed window is exhausted.

    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, retry_after: int | None = None, message: str = "Rate limit"):
        self.retry_after = retry_after
        super().__init__(message)


class InvalidRequestError(ProxyException):
    """Raised when the request body is not JSON or has the wrong shape."""
    status_code = 400


class ModerationRejectedError(ProxyException):
    """Raised when the moderation classifier flags the user text."""
    status_code = 400

    def __init__(self, message: str = "Message flagged by moderation"):
        super().__init__(message)


class UpstreamError(ProxyException):
    """Raised when the completion or moderation API answers non-2xx.

    The upstream status and raw body are relayed to the caller as-is.
    """

    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(body)


class ProxyError(ProxyException):
    """Raised for network failures talking to the upstream API.

    Maps to HTTP 500.
    """
    status_code = 500
