"""Shared API dependencies for authentication and service construction."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from agrilearn_messaging.core.security import decode_subject
from agrilearn_messaging.db.session import get_db
from agrilearn_messaging.models import User
from agrilearn_messaging.services import (
    AttachmentHandler,
    ConversationAggregator,
    MessageStore,
    NotificationSurface,
    PermissionGate,
    ThreadResolver,
)

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> User:
    """Get the current authenticated user from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        User object for the authenticated user

    Raises:
        HTTPException: If token is invalid or user not found
    """
    try:
        user_id = decode_subject(credentials.credentials)
    except (JWTError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return user


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]


def get_attachment_handler() -> AttachmentHandler:
    """Return the attachment handler backed by the configured storage."""
    return AttachmentHandler()


AttachmentHandlerDep = Annotated[AttachmentHandler, Depends(get_attachment_handler)]


def get_permission_gate(db: SessionDep) -> PermissionGate:
    return PermissionGate.for_session(db)


PermissionGateDep = Annotated[PermissionGate, Depends(get_permission_gate)]


def get_message_store(
    db: SessionDep,
    gate: PermissionGateDep,
    attachments: AttachmentHandlerDep,
) -> MessageStore:
    return MessageStore(db, gate=gate, attachments=attachments)


def get_conversation_aggregator(db: SessionDep) -> ConversationAggregator:
    return ConversationAggregator(db)


def get_thread_resolver(db: SessionDep) -> ThreadResolver:
    return ThreadResolver(db)


def get_notification_surface(db: SessionDep) -> NotificationSurface:
    return NotificationSurface(db)


MessageStoreDep = Annotated[MessageStore, Depends(get_message_store)]
ConversationAggregatorDep = Annotated[ConversationAggregator, Depends(get_conversation_aggregator)]
ThreadResolverDep = Annotated[ThreadResolver, Depends(get_thread_resolver)]
NotificationSurfaceDep = Annotated[NotificationSurface, Depends(get_notification_surface)]
