# src/agrilearn_messaging/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .common import CountEnvelope, Envelope, StatusEnvelope
from .message import (
    BadgeEnvelope,
    ConversationListEnvelope,
    ConversationOut,
    MarkAllReadRequest,
    MessageEnvelope,
    MessageFlagsUpdate,
    MessageListEnvelope,
    MessageOut,
    SendMessageRequest,
)
from .user import UserListEnvelope, UserSummary

__all__ = [
    "CountEnvelope", "Envelope", "StatusEnvelope",
    "BadgeEnvelope", "ConversationListEnvelope", "ConversationOut",
    "MarkAllReadRequest", "MessageEnvelope", "MessageFlagsUpdate",
    "MessageListEnvelope", "MessageOut", "SendMessageRequest",
    "UserListEnvelope", "UserSummary",
]
