# src/agrilearn_messaging/services/__init__.py
"""Business logic services for the messaging core."""

from .attachments import AttachmentHandler, AttachmentUpload, LocalAttachmentStorage
from .conversations import Conversation, ConversationAggregator
from .directory import CourseDirectory, UserDirectory
from .message_store import MessageStore
from .notifications import BadgeSummary, NotificationSurface
from .permissions import PermissionGate
from .threads import ThreadResolver

__all__ = [
    "AttachmentHandler", "AttachmentUpload", "LocalAttachmentStorage",
    "Conversation", "ConversationAggregator",
    "CourseDirectory", "UserDirectory",
    "MessageStore",
    "BadgeSummary", "NotificationSurface",
    "PermissionGate",
    "ThreadResolver",
]
