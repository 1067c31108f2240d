"""Apso client exceptions."""

from typing import Any


class ApsoError(Exception):
    """Base exception for Apso client errors."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(ApsoError):
    """Request shape is invalid; raised before any network call."""

    pass


class ConfigurationError(ApsoError):
    """Client configuration is incomplete."""

    pass


class UnsupportedConfigurationError(ApsoError):
    """Unknown executor, HTTP verb or query style."""

    pass


class NotFoundError(ApsoError):
    """No record matched a required lookup."""

    pass


class TransportError(ApsoError):
    """Request failed at the HTTP level.

    Args:
        message: Human readable description.
        status: HTTP status code, if a response was received.
        body: Decoded response body, if any.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        body: Any = None,
        code: str | None = None,
    ):
        super().__init__(message, code)
        self.status = status
        self.body = body


class NetworkError(TransportError):
    """Failed to reach the API (connection refused, reset, aborted)."""

    pass


class RequestTimeoutError(NetworkError):
    """A single attempt exceeded the configured timeout."""

    pass
