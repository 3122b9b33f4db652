"""Background polling for conversation updates.

Delivery is poll-based: a client refreshes its conversation list, unread
count and open conversation on a fixed interval. `ConversationPoller` owns
that loop with an explicit `start()`/`stop()` lifecycle so it only runs while
a view or session is alive.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from agrilearn_messaging.client.http import MessagingClient, MessagingClientError
from agrilearn_messaging.core.settings import settings

# Configure logger for this module
logger = logging.getLogger(__name__)

SnapshotCallback = Callable[["PollSnapshot"], Awaitable[None] | None]


@dataclass
class PollSnapshot:
    """State observed by one refresh."""

    conversations: list[dict[str, Any]] = field(default_factory=list)
    unread_count: int = 0
    current_conversation: int | None = None
    messages: list[dict[str, Any]] = field(default_factory=list)


class ConversationPoller:
    """Periodically refresh conversations and hand snapshots to a callback."""

    def __init__(
        self,
        client: MessagingClient,
        on_update: SnapshotCallback | None = None,
        *,
        interval_seconds: float | None = None,
    ) -> None:
        self.client = client
        self.on_update = on_update
        self.interval_seconds = (
            interval_seconds
            if interval_seconds is not None
            else settings.conversation_poll_interval_seconds
        )
        self.current_conversation: int | None = None
        self.last_snapshot: PollSnapshot | None = None
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self._refresh_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def open_conversation(self, user_id: int | None) -> None:
        """Select the conversation refreshed alongside the list."""
        self.current_conversation = user_id

    async def start(self) -> None:
        """Start the background polling loop."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background polling loop and wait for it to finish."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def refresh(self) -> PollSnapshot:
        """Fetch a fresh snapshot once and deliver it to the callback."""
        async with self._refresh_lock:
            conversations = await self.client.list_conversations()
            unread = await self.client.unread_count()
            messages: list[dict[str, Any]] = []
            if self.current_conversation is not None:
                messages = await self.client.list_messages(self.current_conversation)

            snapshot = PollSnapshot(
                conversations=conversations,
                unread_count=unread,
                current_conversation=self.current_conversation,
                messages=messages,
            )
            self.last_snapshot = snapshot

        if self.on_update is not None:
            result = self.on_update(snapshot)
            if asyncio.iscoroutine(result):
                await result
        return snapshot

    async def _run(self) -> None:
        interval = max(0.01, float(self.interval_seconds))

        while not self._stopping.is_set():
            try:
                await self.refresh()
            except MessagingClientError as e:
                logger.warning("ConversationPoller refresh failed: %s", e)
            except (ValueError, TypeError, KeyError) as e:
                logger.error("ConversationPoller received malformed data: %s", e, exc_info=True)
            except Exception as e:
                # Callback failures must not end the loop while the view is open.
                logger.error("ConversationPoller refresh raised: %s", e, exc_info=True)

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                continue
