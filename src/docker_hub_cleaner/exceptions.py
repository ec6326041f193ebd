"""Exceptions raised by the Docker Hub cleaner."""

from __future__ import annotations


class CleanerError(Exception):
    """Base exception for all cleaner errors."""


class Unauthorized(CleanerError):
    """Authentication failed or the token was rejected (HTTP 401)."""

    def __init__(self, message: str = "authentication failed") -> None:
        super().__init__(message)


class NotFound(CleanerError):
    """Repository or tag does not exist (HTTP 404)."""

    def __init__(self, message: str = "repository or tag not found") -> None:
        super().__init__(message)


class RateLimited(CleanerError):
    """Still throttled after exhausting every retry."""

    def __init__(self, message: str = "rate limit exceeded") -> None:
        super().__init__(message)


class NetworkError(CleanerError):
    """Connection, DNS, TLS or timeout failure below HTTP."""


class InvalidResponse(CleanerError):
    """The registry answered with a payload we could not decode."""


class ConfigurationError(CleanerError, ValueError):
    """Invalid user configuration, e.g. a regular expression that does not compile."""


class Cancelled(CleanerError):
    """The run was cancelled while waiting for a permit or a backoff delay."""

    def __init__(self, message: str = "operation cancelled") -> None:
        super().__init__(message)


class APIError(CleanerError):
    """Any other non-success HTTP status."""

    def __init__(self, status_code: int, endpoint: str, message: str) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.message = message
        super().__init__(
            f"API error (status {status_code}) at {endpoint}: {message}"
        )


class TagDeletionError(CleanerError):
    """Deleting a single tag failed; the run carries on with the others."""

    def __init__(self, tag: str, cause: Exception) -> None:
        self.tag = tag
        self.cause = cause
        super().__init__(f"failed to delete tag {tag}: {cause}")
