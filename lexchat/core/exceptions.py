"""
Custom exceptions for the application.
"""

from typing import Any, Optional


class LexChatError(Exception):
    """Base exception for lexchat."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(LexChatError):
    """Resource not found."""

    pass


class TransportError(LexChatError):
    """Chat stream could not be opened or read."""

    pass


class StreamOpenError(TransportError):
    """Opening the chat stream failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code


class StreamReadError(TransportError):
    """Reading from an open chat stream failed."""

    pass


class ApiResponseError(LexChatError):
    """Backend answered with a non-success envelope."""

    def __init__(self, message: str, code: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details=details)
        self.code = code


class AuthenticationError(ApiResponseError):
    """Bearer token rejected by the backend."""

    pass


class SideEffectError(LexChatError):
    """An action side effect (upload, document generation) failed."""

    pass


class UploadError(SideEffectError):
    """File upload rejected or returned no URL."""

    pass


class DocumentGenerationError(SideEffectError):
    """Legal document generation failed or returned nothing."""

    pass


class InfrastructureError(LexChatError):
    """Infrastructure-related error (local storage, external services, etc.)."""

    pass


class SessionBusyError(LexChatError):
    """A streaming session is already in flight for this view."""

    pass
