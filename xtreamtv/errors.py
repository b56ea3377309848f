"""
Error types for the XtreamTV core.

Fetch-path errors (``ProviderError`` and subclasses) cross the client
boundary so callers can render a retry affordance. ``StorageError`` is
raised by progress writes; progress reads never raise it.
"""


class XtreamTVError(Exception):
    """Base class for all XtreamTV errors."""


class ConfigurationError(XtreamTVError):
    """Malformed credentials or settings."""


class ProviderError(XtreamTVError):
    """Base class for failures talking to the provider."""


class Cancelled(ProviderError):
    """The caller aborted the request. Never retried."""

    def __init__(self, operation: str = "request"):
        self.operation = operation
        super().__init__(f"{operation} cancelled")


class NetworkError(ProviderError):
    """Transport failure or non-2xx status code. Retryable."""

    def __init__(self, message: str, status_code: int | None = None, url: str | None = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class RetryExhausted(ProviderError):
    """The retry budget was spent; carries the last observed error."""

    def __init__(self, operation: str, attempts: int, last_error: NetworkError):
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"{operation} failed after {attempts} attempts: {last_error}"
        )


class DecodeError(ProviderError):
    """Response body was not JSON or did not match the expected shape."""


class StorageError(XtreamTVError):
    """Durable medium read/write/validation failure."""


__all__ = [
    "XtreamTVError",
    "ConfigurationError",
    "ProviderError",
    "Cancelled",
    "NetworkError",
    "RetryExhausted",
    "DecodeError",
    "StorageError",
]
