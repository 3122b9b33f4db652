"""User-related Pydantic schemas."""
from __future__ import annotations

from .common import CamelModel, Envelope


class UserSummary(CamelModel):
    """Public profile of a user as shown in conversations and directories."""

    id: int
    name: str
    email: str
    role: str
    avatar: str | None = None


class UserListEnvelope(Envelope):
    users: list[UserSummary]
