# src/agrilearn_messaging/schemas/message.py
"""Message-related Pydantic schemas."""
from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import Field

from .common import CamelModel, Envelope
from .user import UserSummary

Priority = Literal["low", "normal", "high", "urgent"]
MessageType = Literal["text", "system", "notification"]


class SendMessageRequest(CamelModel):
    """Schema for sending a message; attachments arrive as multipart files."""

    to: int = Field(..., description="Recipient user id")
    content: str = Field("", description="Message body")
    subject: str | None = Field(None, description="Optional subject line")
    priority: Priority | None = None
    message_type: MessageType | None = None
    thread_id: int | None = Field(None, description="Thread to post into")
    reply_to: int | None = Field(None, description="Message being replied to")
    tags: list[str] = Field(default_factory=list)
    course_id: int | None = None


class MarkAllReadRequest(CamelModel):
    """Optional filter restricting mark-all-read to one correspondent."""

    conversation: int | None = None


class MessageFlagsUpdate(CamelModel):
    starred: bool | None = None
    archived: bool | None = None


class AttachmentOut(CamelModel):
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str


class MessageOut(CamelModel):
    """Schema for message information returned by the API."""

    id: int
    sender_id: int = Field(..., alias="from")
    recipient_id: int = Field(..., alias="to")
    subject: str | None = None
    content: str
    attachments: list[AttachmentOut] = Field(default_factory=list)
    message_type: str
    priority: str
    thread_id: int | None = None
    reply_to: int | None = None
    read: bool
    read_at: datetime | None = None
    archived: bool
    starred: bool
    tags: list[str] = Field(default_factory=list)
    course_id: int | None = None
    created_at: datetime


class ConversationOut(CamelModel):
    user: UserSummary
    last_message: str
    last_message_id: int
    last_message_date: datetime
    unread_count: int


class MessageEnvelope(Envelope):
    message: MessageOut


class MessageListEnvelope(Envelope):
    messages: list[MessageOut]


class ConversationListEnvelope(Envelope):
    conversations: list[ConversationOut]


class BadgeEnvelope(Envelope):
    unread_messages: int
    unread_conversations: int
