"""Exception taxonomy shared across the request pipeline."""

from __future__ import annotations

HTTP_UNAUTHORIZED = 401
HTTP_BAD_GATEWAY = 502
HTTP_SERVER_ERROR = 500


class MailboxUsageError(Exception):
    """Base class for errors that carry an HTTP status for the caller."""

    default_status_code = HTTP_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code if status_code is not None else self.default_status_code


class AuthenticationError(MailboxUsageError):
    """Raised when the inbound credential is missing or cannot be exchanged."""

    default_status_code = HTTP_UNAUTHORIZED


class UpstreamError(MailboxUsageError):
    """Raised when the Graph API returns a non-2xx response."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"Graph API error {status_code}: {body}", status_code)
        self.body = body


class ConfigurationError(MailboxUsageError):
    """Raised when required operator configuration is missing or invalid."""
