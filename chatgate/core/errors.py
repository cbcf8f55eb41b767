from __future__ import annotations


class ChatGateError(Exception):
    """Base error for chatgate.

    ``public_message`` is the only text that may be shown to a client; the
    exception string itself can carry internal detail for logs.
    """

    status_code = 500
    default_public_message = "Internal server error"

    def __init__(self, message: str | None = None, *, public_message: str | None = None) -> None:
        super().__init__(message or public_message or self.default_public_message)
        self.public_message = public_message or message or self.default_public_message


class ConfigurationError(ChatGateError):
    """Missing or invalid required configuration; fatal at startup."""


class UnauthorizedError(ChatGateError):
    """Missing or invalid session or admin secret."""

    status_code = 401
    default_public_message = "Unauthorized"


class ValidationError(ChatGateError):
    """Malformed client input."""

    status_code = 400
    default_public_message = "Invalid request"


class NotFoundError(ChatGateError):
    """Unknown resource id."""

    status_code = 404
    default_public_message = "Not found"


class UpstreamError(ChatGateError):
    """Store, auth provider or webhook failure. Detail stays server-side."""

    status_code = 500
    default_public_message = "Failed to process request"

    def __init__(self, message: str | None = None, *, public_message: str | None = None) -> None:
        # Never fall back to the internal message for the client-facing text.
        super().__init__(message, public_message=public_message or self.default_public_message)
