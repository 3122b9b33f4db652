"""Domain exceptions raised by the messaging services.

Every exception carries the HTTP status it maps to so the API layer can render
a `{success: false, message}` envelope without inspecting the concrete type.
"""

from __future__ import annotations

from fastapi import status


class MessagingError(RuntimeError):
    """Base class for all messaging failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Messaging operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(MessagingError):
    """Missing, malformed or oversized input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid message request"


class ContentEmpty(ValidationError):
    default_message = "Message content is required"


class ContentTooLong(ValidationError):
    default_message = "Message content is too long"


class PermissionDenied(MessagingError):
    """Messaging policy violation or wrong-user mutation."""

    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You are not allowed to message this user"


class AccessDenied(PermissionDenied):
    default_message = "Access denied"


class NotFound(MessagingError):
    """Message, user or thread absent."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class RecipientNotFound(NotFound):
    default_message = "Recipient not found"


class StorageFailure(MessagingError):
    """Attachment persistence failed; nothing was committed."""

    default_message = "Failed to store message attachments"


__all__ = [
    "MessagingError",
    "ValidationError",
    "ContentEmpty",
    "ContentTooLong",
    "PermissionDenied",
    "AccessDenied",
    "NotFound",
    "RecipientNotFound",
    "StorageFailure",
]
