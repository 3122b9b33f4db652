"""Thread retrieval and bulk read-marking."""
from __future__ import annotations

import logging

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from agrilearn_messaging.core.errors import AccessDenied, NotFound
from agrilearn_messaging.db.time import utcnow
from agrilearn_messaging.models import Message

logger = logging.getLogger(__name__)

__all__ = ["ThreadResolver"]


class ThreadResolver:
    """Resolve the messages sharing a thread with a root or member message."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def thread_key(self, message_id: int) -> int:
        """Return the root id of the thread `message_id` belongs to.

        A deleted root is still a valid key while replies reference it.
        """
        message = self.db.get(Message, message_id)
        return message.thread_key if message is not None else message_id

    def get_thread(self, root_or_member_id: int, caller_id: int) -> list[Message]:
        """Return the thread ordered oldest first and mark it read for the caller.

        Raises:
            NotFound: No message belongs to the thread.
            AccessDenied: The caller takes part in none of its messages.
        """
        key = self.thread_key(root_or_member_id)
        stmt = (
            select(Message)
            .where(or_(Message.id == key, Message.thread_id == key))
            .order_by(Message.created_at, Message.id)
        )
        messages = list(self.db.scalars(stmt).all())
        if not messages:
            raise NotFound("Thread not found")
        if not any(message.involves(caller_id) for message in messages):
            raise AccessDenied()

        unread_ids = [
            message.id
            for message in messages
            if message.recipient_id == caller_id and not message.read
        ]
        if unread_ids:
            self.db.execute(
                update(Message)
                .where(Message.id.in_(unread_ids), Message.read.is_(False))
                .values(read=True, read_at=utcnow())
                .execution_options(synchronize_session="fetch")
            )
            self.db.commit()
            for message in messages:
                if message.id in unread_ids:
                    self.db.refresh(message)
            logger.debug("Marked %d thread messages read for user %s", len(unread_ids), caller_id)

        return messages
