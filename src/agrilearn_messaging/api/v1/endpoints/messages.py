# src/agrilearn_messaging/api/v1/endpoints/messages.py
"""Message and conversation endpoints for the messaging API."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Query, Request, status
from pydantic import ValidationError as SchemaValidationError
from starlette.datastructures import UploadFile

from agrilearn_messaging.api.v1.dependencies import (
    AttachmentHandlerDep,
    ConversationAggregatorDep,
    CurrentUserDep,
    MessageStoreDep,
    NotificationSurfaceDep,
    PermissionGateDep,
    ThreadResolverDep,
)
from agrilearn_messaging.core.errors import ValidationError
from agrilearn_messaging.schemas import (
    BadgeEnvelope,
    ConversationListEnvelope,
    ConversationOut,
    CountEnvelope,
    MarkAllReadRequest,
    MessageEnvelope,
    MessageFlagsUpdate,
    MessageListEnvelope,
    MessageOut,
    SendMessageRequest,
    StatusEnvelope,
    UserListEnvelope,
    UserSummary,
)
from agrilearn_messaging.services.attachments import AttachmentHandler, AttachmentUpload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])

_FORM_FIELDS = (
    "to",
    "content",
    "subject",
    "priority",
    "messageType",
    "threadId",
    "replyTo",
    "courseId",
)


def _validate_send_payload(payload: Any) -> SendMessageRequest:
    try:
        return SendMessageRequest.model_validate(payload)
    except SchemaValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise ValidationError(f"Invalid field '{location}': {first.get('msg')}") from exc


async def _read_send_request(
    request: Request, attachments: AttachmentHandler
) -> tuple[SendMessageRequest, list[AttachmentUpload]]:
    """Parse a send request from either a JSON body or a multipart form.

    File count and sizes are checked before any upload is read into memory.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            payload = await request.json()
        except ValueError as exc:
            raise ValidationError("Request body must be valid JSON") from exc
        return _validate_send_payload(payload), []

    form = await request.form()
    fields: dict[str, Any] = {}
    for name in _FORM_FIELDS:
        value = form.get(name)
        if isinstance(value, str) and value != "":
            fields[name] = value
    tags = [value for value in form.getlist("tags") if isinstance(value, str) and value]
    if tags:
        fields["tags"] = tags

    files = [item for item in form.getlist("attachments") if isinstance(item, UploadFile)]
    if len(files) > attachments.max_files:
        raise ValidationError(f"A message can carry at most {attachments.max_files} attachments")
    for item in files:
        if item.size is not None and item.size > attachments.max_bytes:
            raise ValidationError(f"Attachment exceeds size limit: {item.filename}")

    uploads = [
        AttachmentUpload(
            original_name=item.filename or "",
            data=await item.read(),
            content_type=item.content_type,
        )
        for item in files
    ]
    return _validate_send_payload(fields), uploads


@router.post("", status_code=status.HTTP_201_CREATED, response_model=MessageEnvelope)
async def send_message(
    request: Request,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
    attachments: AttachmentHandlerDep,
) -> MessageEnvelope:
    """Send a message, optionally with up to five attachments."""
    payload, uploads = await _read_send_request(request, attachments)
    message = store.send(
        current_user.id,
        payload.to,
        payload.content,
        subject=payload.subject,
        attachments=uploads,
        priority=payload.priority,
        thread_id=payload.thread_id,
        reply_to=payload.reply_to,
        message_type=payload.message_type,
        tags=payload.tags,
        course_id=payload.course_id,
    )
    return MessageEnvelope(message=MessageOut.model_validate(message))


@router.get("", response_model=MessageListEnvelope)
async def list_messages(
    current_user: CurrentUserDep,
    store: MessageStoreDep,
    conversation: int | None = Query(None, description="Correspondent user id"),
    starred: bool | None = Query(None),
    archived: bool | None = Query(None),
    limit: int | None = Query(None, ge=1, le=500),
) -> MessageListEnvelope:
    """List messages with one correspondent, or the caller's recent messages."""
    if conversation is not None:
        messages = store.list_between(current_user.id, conversation)
    else:
        messages = store.list_for_user(
            current_user.id, starred=starred, archived=archived, limit=limit
        )
    return MessageListEnvelope(messages=[MessageOut.model_validate(m) for m in messages])


@router.get("/conversations", response_model=ConversationListEnvelope)
async def list_conversations(
    current_user: CurrentUserDep,
    aggregator: ConversationAggregatorDep,
) -> ConversationListEnvelope:
    """Return one entry per correspondent, most recent first."""
    conversations = aggregator.list_conversations(current_user.id)
    return ConversationListEnvelope(
        conversations=[ConversationOut.model_validate(c) for c in conversations]
    )


@router.get("/unread-count", response_model=CountEnvelope)
async def unread_count(
    current_user: CurrentUserDep,
    notifications: NotificationSurfaceDep,
) -> CountEnvelope:
    return CountEnvelope(count=notifications.unread_count(current_user.id))


@router.get("/notifications", response_model=BadgeEnvelope)
async def notification_badges(
    current_user: CurrentUserDep,
    notifications: NotificationSurfaceDep,
) -> BadgeEnvelope:
    """Badge counters for the navigation bar."""
    summary = notifications.badges(current_user.id)
    return BadgeEnvelope(
        unread_messages=summary.unread_messages,
        unread_conversations=summary.unread_conversations,
    )


@router.get("/users", response_model=UserListEnvelope)
async def list_messageable_users(
    current_user: CurrentUserDep,
    gate: PermissionGateDep,
    search: str | None = Query(None, max_length=100),
) -> UserListEnvelope:
    """Users the caller is allowed to message, optionally filtered by name or email."""
    users = gate.list_messageable(current_user.id, search)
    return UserListEnvelope(users=[UserSummary.model_validate(u) for u in users])


@router.put("/mark-all-read", response_model=CountEnvelope)
async def mark_all_read(
    current_user: CurrentUserDep,
    store: MessageStoreDep,
    body: MarkAllReadRequest | None = Body(None),
) -> CountEnvelope:
    """Mark every unread message to the caller read, optionally for one correspondent."""
    correspondent = body.conversation if body is not None else None
    count = store.mark_all_read(current_user.id, correspondent)
    return CountEnvelope(count=count)


@router.get("/thread/{thread_id}", response_model=MessageListEnvelope)
async def get_thread(
    thread_id: int,
    current_user: CurrentUserDep,
    threads: ThreadResolverDep,
) -> MessageListEnvelope:
    """Return a thread oldest first; the caller's unread messages become read."""
    messages = threads.get_thread(thread_id, current_user.id)
    return MessageListEnvelope(messages=[MessageOut.model_validate(m) for m in messages])


@router.delete("/conversation/{user_id}", response_model=CountEnvelope)
async def delete_conversation(
    user_id: int,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
) -> CountEnvelope:
    """Delete every message exchanged with `user_id`."""
    count = store.delete_conversation(current_user.id, user_id)
    return CountEnvelope(count=count)


@router.get("/{message_id}", response_model=MessageEnvelope)
async def get_message(
    message_id: int,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
) -> MessageEnvelope:
    """Fetch a message; opening it as the recipient marks it read."""
    message = store.fetch_and_mark_read(message_id, current_user.id)
    return MessageEnvelope(message=MessageOut.model_validate(message))


@router.put("/{message_id}/read", response_model=StatusEnvelope)
async def mark_message_read(
    message_id: int,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
) -> StatusEnvelope:
    store.mark_read(message_id, current_user.id)
    return StatusEnvelope(message="Message marked as read")


@router.put("/{message_id}/flags", response_model=MessageEnvelope)
async def update_message_flags(
    message_id: int,
    flags: MessageFlagsUpdate,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
) -> MessageEnvelope:
    """Star/unstar or archive/unarchive a message."""
    message = store.update_flags(
        message_id,
        current_user.id,
        starred=flags.starred,
        archived=flags.archived,
    )
    return MessageEnvelope(message=MessageOut.model_validate(message))


@router.delete("/{message_id}", response_model=StatusEnvelope)
async def delete_message(
    message_id: int,
    current_user: CurrentUserDep,
    store: MessageStoreDep,
) -> StatusEnvelope:
    store.delete(message_id, current_user.id)
    return StatusEnvelope(message="Message deleted")
