"""Durable storage of messages and their read state.

`MessageStore` is the only writer of message rows. Every public operation
commits at most once; on failure the session is rolled back so a caller never
observes a half-written message.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from agrilearn_messaging.core.errors import (
    AccessDenied,
    ContentEmpty,
    ContentTooLong,
    NotFound,
    PermissionDenied,
    RecipientNotFound,
    StorageFailure,
    ValidationError,
)
from agrilearn_messaging.core.settings import settings
from agrilearn_messaging.db.time import utcnow
from agrilearn_messaging.models import Message, MessageAttachment
from agrilearn_messaging.models.message import (
    DEFAULT_MESSAGE_TYPE,
    DEFAULT_PRIORITY,
    MESSAGE_TYPES,
    PRIORITIES,
)
from agrilearn_messaging.services.attachments import (
    AttachmentHandler,
    AttachmentUpload,
    StoredAttachment,
)
from agrilearn_messaging.services.permissions import PermissionGate

logger = logging.getLogger(__name__)

__all__ = ["MessageStore", "between"]


def between(user_a: int, user_b: int):  # type: ignore[no-untyped-def]
    """SQL condition matching messages exchanged by two users in either direction."""
    return or_(
        and_(Message.sender_id == user_a, Message.recipient_id == user_b),
        and_(Message.sender_id == user_b, Message.recipient_id == user_a),
    )


class MessageStore:
    """Create, read, mark and delete messages on behalf of a caller."""

    def __init__(
        self,
        db: Session,
        gate: PermissionGate | None = None,
        attachments: AttachmentHandler | None = None,
    ) -> None:
        self.db = db
        self.gate = gate or PermissionGate.for_session(db)
        self.attachments = attachments or AttachmentHandler()

    # ------------------------------------------------------------------ send

    def send(
        self,
        sender_id: int,
        recipient_id: int,
        content: str,
        *,
        subject: str | None = None,
        attachments: Sequence[AttachmentUpload] = (),
        priority: str | None = None,
        thread_id: int | None = None,
        reply_to: int | None = None,
        message_type: str | None = None,
        tags: Sequence[str] | None = None,
        course_id: int | None = None,
    ) -> Message:
        """Persist a new message from `sender_id` to `recipient_id`.

        Args:
            sender_id: Authenticated caller.
            recipient_id: Target user.
            content: Message body, required and bounded by `MESSAGE_MAX_LENGTH`.
            subject: Optional subject line.
            attachments: Uploads stored together with the message.
            priority: One of `PRIORITIES`, defaults to "normal".
            thread_id: Explicit thread to post into; normalised to its root.
            reply_to: Message being answered; its thread is inherited.
            message_type: One of `MESSAGE_TYPES`, defaults to "text".
            tags: Short labels kept with the message.
            course_id: Optional course the message relates to.

        Returns:
            The committed message with its attachments loaded.

        Raises:
            ValidationError: Self-messaging or invalid fields (including
                `ContentEmpty` and `ContentTooLong`), or
                `reply_to` outside the thread named by `thread_id`.
            RecipientNotFound: The recipient does not exist.
            PermissionDenied: The messaging policy forbids the pair, or the
                sender is not part of the thread being replied to.
            NotFound: `thread_id` or `reply_to` does not resolve.
            StorageFailure: Attachments or the row could not be persisted.
        """
        if sender_id == recipient_id:
            raise ValidationError("You cannot send a message to yourself")

        content = content or ""
        if not content.strip():
            raise ContentEmpty()
        if len(content) > settings.message_max_length:
            raise ContentTooLong(
                f"Message content cannot exceed {settings.message_max_length} characters"
            )
        if subject is not None and len(subject) > settings.subject_max_length:
            raise ValidationError(
                f"Subject cannot exceed {settings.subject_max_length} characters"
            )
        priority = priority or DEFAULT_PRIORITY
        if priority not in PRIORITIES:
            raise ValidationError(f"Invalid priority: {priority}")
        message_type = message_type or DEFAULT_MESSAGE_TYPE
        if message_type not in MESSAGE_TYPES:
            raise ValidationError(f"Invalid message type: {message_type}")
        clean_tags = [tag.strip() for tag in (tags or []) if tag and tag.strip()]
        if any(len(tag) > settings.tag_max_length for tag in clean_tags):
            raise ValidationError(f"Tags cannot exceed {settings.tag_max_length} characters")

        recipient = self.gate.users.get(recipient_id)
        if recipient is None:
            raise RecipientNotFound()
        if not self.gate.can_message(sender_id, recipient_id):
            logger.info("Message from %s to %s denied by policy", sender_id, recipient_id)
            raise PermissionDenied()

        resolved_thread = self._resolve_thread(sender_id, thread_id, reply_to)

        stored: list[StoredAttachment] = []
        if attachments:
            stored = self.attachments.store(attachments)

        message = Message(
            sender_id=sender_id,
            recipient_id=recipient_id,
            subject=subject,
            content=content,
            message_type=message_type,
            priority=priority,
            thread_id=resolved_thread,
            reply_to=reply_to,
            read=False,
            read_at=None,
            tags=clean_tags,
            course_id=course_id,
            created_at=utcnow(),
        )
        message.attachments = [
            MessageAttachment(
                position=position,
                filename=item.filename,
                original_name=item.original_name,
                mime_type=item.mime_type,
                size=item.size,
                url=item.url,
            )
            for position, item in enumerate(stored)
        ]

        try:
            self.db.add(message)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            self.attachments.discard(stored)
            logger.error("Failed to persist message %s -> %s: %s", sender_id, recipient_id, exc)
            raise StorageFailure("Failed to save message") from exc

        self.db.refresh(message)
        logger.debug(
            "Stored message %s from %s to %s (thread=%s, attachments=%d)",
            message.id,
            sender_id,
            recipient_id,
            message.thread_id,
            len(stored),
        )
        return message

    def _resolve_thread(
        self, sender_id: int, thread_id: int | None, reply_to: int | None
    ) -> int | None:
        parent: Message | None = None
        if reply_to is not None:
            parent = self.db.get(Message, reply_to)
            if parent is None:
                raise NotFound("The message being replied to was not found")
            if not parent.involves(sender_id):
                raise PermissionDenied("You cannot reply to a message you are not part of")

        if thread_id is not None:
            key = self._resolve_explicit_thread(sender_id, thread_id)
            if parent is not None and parent.thread_key != key:
                raise ValidationError("replyTo belongs to a different thread than threadId")
            return key
        if parent is not None:
            return parent.thread_key
        return None

    def _resolve_explicit_thread(self, sender_id: int, thread_id: int) -> int:
        root = self.db.get(Message, thread_id)
        if root is None:
            raise NotFound("Thread not found")
        key = root.thread_key

        # A member whose root was deleted still resolves to the original key.
        members = select(Message).where(or_(Message.id == key, Message.thread_id == key))
        participant = members.where(
            or_(Message.sender_id == sender_id, Message.recipient_id == sender_id)
        )
        if self.db.scalars(participant.limit(1)).first() is None:
            raise PermissionDenied("You are not a participant in this thread")
        return key

    # ------------------------------------------------------------------ read

    def peek(self, message_id: int, caller_id: int) -> Message:
        """Return a message the caller takes part in without changing it."""
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFound("Message not found")
        if not message.involves(caller_id):
            raise AccessDenied()
        return message

    def fetch_and_mark_read(self, message_id: int, caller_id: int) -> Message:
        """Return a message and mark it read when the recipient opens it."""
        message = self.peek(message_id, caller_id)
        if message.recipient_id == caller_id and not message.read:
            self._mark(message)
        return message

    def list_between(self, caller_id: int, other_id: int) -> Sequence[Message]:
        """Return the messages exchanged with `other_id`, oldest first."""
        stmt = (
            select(Message)
            .where(between(caller_id, other_id))
            .order_by(Message.created_at, Message.id)
        )
        return self.db.scalars(stmt).all()

    def list_for_user(
        self,
        caller_id: int,
        *,
        starred: bool | None = None,
        archived: bool | None = None,
        limit: int | None = None,
    ) -> list[Message]:
        """Return the caller's most recent messages, oldest first."""
        stmt = select(Message).where(
            or_(Message.sender_id == caller_id, Message.recipient_id == caller_id)
        )
        if starred is not None:
            stmt = stmt.where(Message.starred.is_(starred))
        if archived is not None:
            stmt = stmt.where(Message.archived.is_(archived))
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(
            limit or settings.message_list_limit
        )
        messages = list(self.db.scalars(stmt).all())
        messages.reverse()
        return messages

    # ------------------------------------------------------------ read state

    def mark_read(self, message_id: int, caller_id: int) -> None:
        """Mark a message read; only its recipient may do so.

        Marking an already-read message is a no-op and keeps the original
        `read_at`.
        """
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFound("Message not found")
        if message.recipient_id != caller_id:
            if message.sender_id == caller_id:
                raise PermissionDenied("Only the recipient can mark a message as read")
            raise AccessDenied()
        if message.read:
            return
        self._mark(message)

    def mark_all_read(self, caller_id: int, correspondent_id: int | None = None) -> int:
        """Mark every unread message addressed to the caller as read.

        Runs as a single UPDATE so concurrent pollers of the same user cannot
        lose each other's writes.

        Returns:
            Number of messages that changed state.
        """
        stmt = update(Message).where(
            Message.recipient_id == caller_id,
            Message.read.is_(False),
        )
        if correspondent_id is not None:
            stmt = stmt.where(Message.sender_id == correspondent_id)
        stmt = stmt.values(read=True, read_at=utcnow()).execution_options(
            synchronize_session="fetch"
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return int(result.rowcount or 0)

    def _mark(self, message: Message) -> None:
        message.read = True
        message.read_at = utcnow()
        self.db.commit()

    # ----------------------------------------------------------------- flags

    def update_flags(
        self,
        message_id: int,
        caller_id: int,
        *,
        starred: bool | None = None,
        archived: bool | None = None,
    ) -> Message:
        """Set the soft `starred` / `archived` flags on a message."""
        message = self.peek(message_id, caller_id)
        if starred is not None:
            message.starred = starred
        if archived is not None:
            message.archived = archived
        self.db.commit()
        return message

    # ---------------------------------------------------------------- delete

    def delete(self, message_id: int, caller_id: int) -> None:
        """Hard-delete a message; sender or recipient only.

        Replies keep their `thread_id` when a thread root is deleted; thread
        lookups tolerate the missing root.
        """
        message = self.peek(message_id, caller_id)
        filenames = [item.filename for item in message.attachments]
        self.db.delete(message)
        self.db.commit()
        self.attachments.discard(filenames)
        logger.info("Message %s deleted by user %s", message_id, caller_id)

    def delete_conversation(self, caller_id: int, other_id: int) -> int:
        """Hard-delete every message exchanged between the caller and `other_id`.

        Returns:
            Number of messages removed.
        """
        ids = list(self.db.scalars(select(Message.id).where(between(caller_id, other_id))).all())
        if not ids:
            return 0
        filenames = list(
            self.db.scalars(
                select(MessageAttachment.filename).where(MessageAttachment.message_id.in_(ids))
            ).all()
        )
        self.db.execute(delete(MessageAttachment).where(MessageAttachment.message_id.in_(ids)))
        self.db.execute(
            delete(Message).where(Message.id.in_(ids)).execution_options(synchronize_session="fetch")
        )
        self.db.commit()
        self.attachments.discard(filenames)
        logger.info("Conversation between %s and %s deleted (%d messages)", caller_id, other_id, len(ids))
        return len(ids)
