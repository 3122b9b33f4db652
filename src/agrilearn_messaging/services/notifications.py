"""Unread counters consumed by navigation badges.

Counts are always computed by query so a missed update can never leave a
badge stale or negative.
"""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from agrilearn_messaging.models import Message


@dataclass(frozen=True)
class BadgeSummary:
    unread_messages: int
    unread_conversations: int


class NotificationSurface:
    """Read-only view over unread message state."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def unread_count(self, user_id: int) -> int:
        """Return the number of unread messages addressed to `user_id`."""
        stmt = select(func.count(Message.id)).where(
            Message.recipient_id == user_id,
            Message.read.is_(False),
        )
        return int(self.db.scalar(stmt) or 0)

    def badges(self, user_id: int) -> BadgeSummary:
        """Return unread message and conversation counts for the navigation bar."""
        stmt = select(
            func.count(Message.id),
            func.count(func.distinct(Message.sender_id)),
        ).where(
            Message.recipient_id == user_id,
            Message.read.is_(False),
        )
        messages, senders = self.db.execute(stmt).one()
        return BadgeSummary(unread_messages=int(messages or 0), unread_conversations=int(senders or 0))
