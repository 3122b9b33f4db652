"""Models describing messages exchanged between users."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from agrilearn_messaging.db.session import Base
from agrilearn_messaging.db.time import utcnow

MESSAGE_TYPES = ("text", "system", "notification")
PRIORITIES = ("low", "normal", "high", "urgent")
DEFAULT_MESSAGE_TYPE = "text"
DEFAULT_PRIORITY = "normal"

_ID = BigInteger().with_variant(Integer, "sqlite")


class Message(Base):
    """A point-to-point message with read state and optional thread linkage.

    `thread_id` is null for thread roots; replies carry the root's id. The
    integer primary key is monotonic and breaks `created_at` ties.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_recipient_created", "recipient_id", "created_at"),
        Index("ix_messages_sender_created", "sender_id", "created_at"),
        Index("ix_messages_thread_created", "thread_id", "created_at"),
        Index("ix_messages_recipient_read", "recipient_id", "read"),
    )

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)

    sender_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)
    recipient_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id"), nullable=False)

    subject: Mapped[str | None] = mapped_column(String(200), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[str] = mapped_column(String(20), nullable=False, default=DEFAULT_MESSAGE_TYPE)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default=DEFAULT_PRIORITY)

    # Plain columns rather than foreign keys: a deleted root leaves replies in place.
    thread_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reply_to: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    starred: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    course_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    attachments: Mapped[list[MessageAttachment]] = relationship(
        "MessageAttachment",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageAttachment.position",
        lazy="selectin",
    )

    @property
    def thread_key(self) -> int:
        """Return the id of the thread root this message belongs to."""
        return self.thread_id if self.thread_id is not None else self.id

    def involves(self, user_id: int) -> bool:
        return user_id in (self.sender_id, self.recipient_id)


class MessageAttachment(Base):
    """Immutable metadata for a file stored alongside a message."""

    __tablename__ = "message_attachments"

    id: Mapped[int] = mapped_column(_ID, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # System-assigned storage key.
    filename: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    original_name: Mapped[str] = mapped_column(String(255), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    message: Mapped[Message] = relationship("Message", back_populates="attachments")
