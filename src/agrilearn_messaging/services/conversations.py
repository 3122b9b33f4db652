"""Per-user conversation list computed from message rows at query time."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from agrilearn_messaging.models import Message, User
from agrilearn_messaging.services.directory import UserDirectory

__all__ = ["Conversation", "ConversationAggregator"]


@dataclass(frozen=True)
class Conversation:
    """Summary of everything exchanged with one correspondent."""

    user: User
    last_message: str
    last_message_id: int
    last_message_date: datetime
    unread_count: int


class ConversationAggregator:
    """Group a user's messages by the other participant."""

    def __init__(self, db: Session, users: UserDirectory | None = None) -> None:
        self.db = db
        self.users = users or UserDirectory(db)

    def list_conversations(self, user_id: int) -> list[Conversation]:
        """Return one entry per correspondent, most recent first.

        The latest message of each group (ties broken by id) provides the
        preview and date; the unread count only includes messages addressed to
        `user_id`. Correspondents that no longer resolve are skipped.
        """
        correspondent = case(
            (Message.sender_id == user_id, Message.recipient_id),
            else_=Message.sender_id,
        )
        unread = case(
            ((Message.recipient_id == user_id) & Message.read.is_(False), 1),
            else_=0,
        )
        ranked = (
            select(
                Message.id.label("message_id"),
                Message.content.label("content"),
                Message.created_at.label("created_at"),
                correspondent.label("correspondent_id"),
                func.row_number()
                .over(
                    partition_by=correspondent,
                    order_by=(Message.created_at.desc(), Message.id.desc()),
                )
                .label("position"),
                func.sum(unread).over(partition_by=correspondent).label("unread_count"),
            )
            .where(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
            .subquery()
        )
        stmt = (
            select(ranked)
            .where(ranked.c.position == 1)
            .order_by(ranked.c.created_at.desc(), ranked.c.message_id.desc())
        )
        rows = self.db.execute(stmt).all()
        if not rows:
            return []

        profiles = self.users.get_many(row.correspondent_id for row in rows)
        conversations: list[Conversation] = []
        for row in rows:
            profile = profiles.get(row.correspondent_id)
            if profile is None:
                continue
            conversations.append(
                Conversation(
                    user=profile,
                    last_message=row.content,
                    last_message_id=row.message_id,
                    last_message_date=row.created_at,
                    unread_count=int(row.unread_count or 0),
                )
            )
        return conversations
