"""Attachment validation and storage hand-off.

The messaging core never serves files itself. It validates uploads, passes
their bytes to an `AttachmentStorage` implementation and keeps the returned
metadata on the message.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Protocol

from agrilearn_messaging.core.errors import StorageFailure, ValidationError
from agrilearn_messaging.core.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class AttachmentUpload:
    """A file received from the client, not yet stored."""

    original_name: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return PurePath(self.original_name).suffix.lower().lstrip(".")


@dataclass(frozen=True)
class StoredAttachment:
    """Metadata captured once an upload has been written to storage."""

    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str


class AttachmentStorage(Protocol):
    """Storage collaborator used for attachment bytes."""

    def save(self, filename: str, data: bytes) -> str:
        """Persist `data` under `filename` and return its retrieval URL."""

    def discard(self, filename: str) -> None:
        """Remove a previously saved file; missing files are ignored."""


class LocalAttachmentStorage:
    """Store attachments in a directory on the local filesystem."""

    def __init__(self, root: str | Path | None = None, base_url: str | None = None) -> None:
        self.root = Path(root or settings.upload_dir)
        self.base_url = (base_url if base_url is not None else settings.attachment_base_url).rstrip("/")

    def save(self, filename: str, data: bytes) -> str:
        self.root.mkdir(parents=True, exist_ok=True)
        (self.root / filename).write_bytes(data)
        return f"{self.base_url}/{filename}"

    def discard(self, filename: str) -> None:
        (self.root / filename).unlink(missing_ok=True)


class AttachmentHandler:
    """Validate uploads and store them as a unit."""

    def __init__(
        self,
        storage: AttachmentStorage | None = None,
        *,
        max_files: int | None = None,
        max_bytes: int | None = None,
        allowed_extensions: frozenset[str] | None = None,
    ) -> None:
        self.storage = storage or LocalAttachmentStorage()
        self.max_files = max_files if max_files is not None else settings.attachment_max_files
        self.max_bytes = max_bytes if max_bytes is not None else settings.attachment_max_bytes
        self.allowed_extensions = allowed_extensions or settings.allowed_extensions

    def validate(self, uploads: Sequence[AttachmentUpload]) -> None:
        """Reject the whole batch if any upload breaks the limits.

        Raises:
            ValidationError: On too many files, an empty or oversized file, or
                a disallowed extension.
        """
        if len(uploads) > self.max_files:
            raise ValidationError(f"A message can carry at most {self.max_files} attachments")

        for upload in uploads:
            if not upload.original_name:
                raise ValidationError("Attachment file name is required")
            if upload.extension not in self.allowed_extensions:
                raise ValidationError(f"File type not allowed: {upload.original_name}")
            if upload.size <= 0:
                raise ValidationError(f"Attachment is empty: {upload.original_name}")
            if upload.size > self.max_bytes:
                raise ValidationError(f"Attachment exceeds size limit: {upload.original_name}")

    def store(self, uploads: Sequence[AttachmentUpload]) -> list[StoredAttachment]:
        """Validate and store every upload, or none of them.

        Raises:
            ValidationError: If validation fails; nothing is stored.
            StorageFailure: If the storage collaborator fails; files stored
                earlier in the batch are discarded.
        """
        self.validate(uploads)

        stored: list[StoredAttachment] = []
        for upload in uploads:
            filename = f"{uuid.uuid4().hex}.{upload.extension}"
            try:
                url = self.storage.save(filename, upload.data)
            except OSError as exc:
                logger.error("Failed to store attachment %s: %s", upload.original_name, exc)
                self.discard(stored)
                raise StorageFailure() from exc
            stored.append(
                StoredAttachment(
                    filename=filename,
                    original_name=upload.original_name,
                    mime_type=_resolve_mime_type(upload),
                    size=upload.size,
                    url=url,
                )
            )
        return stored

    def discard(self, filenames: Iterable[str] | Sequence[StoredAttachment]) -> None:
        """Best-effort removal of stored files after a failed send or a delete."""
        for item in filenames:
            filename = item.filename if isinstance(item, StoredAttachment) else item
            try:
                self.storage.discard(filename)
            except OSError as exc:
                logger.warning("Could not discard attachment %s: %s", filename, exc)


def _resolve_mime_type(upload: AttachmentUpload) -> str:
    if upload.content_type:
        return upload.content_type
    guessed, _ = mimetypes.guess_type(upload.original_name)
    return guessed or DEFAULT_MIME_TYPE
