"""Async HTTP client for the messaging API.

Wraps `httpx.AsyncClient` with bearer authentication and unwraps the
`{success, ...}` envelope returned by every endpoint.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

import httpx

from agrilearn_messaging.core.settings import settings

logger = logging.getLogger(__name__)


class MessagingClientError(RuntimeError):
    """Raised when the API is unreachable or reports a failure."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MessagingClient:
    """Thin async wrapper around the messaging endpoints."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds or settings.client_http_timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    async def _ensure_client(self) -> httpx.AsyncClient:
        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.base_url,
                    timeout=httpx.Timeout(self.timeout_seconds),
                    headers={"Authorization": f"Bearer {self.token}"},
                    transport=self._transport,
                )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        json_data: Any | None = None,
    ) -> dict[str, Any]:
        client = await self._ensure_client()
        try:
            response = await client.request(method, path, params=params, json=json_data)
        except httpx.HTTPError as exc:
            raise MessagingClientError(f"Request to {path} failed: {exc}") from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise MessagingClientError(
                f"Unexpected response from {path}", response.status_code
            ) from exc

        if response.is_error or not payload.get("success", False):
            raise MessagingClientError(
                payload.get("message") or f"Request to {path} failed", response.status_code
            )
        return payload

    async def list_conversations(self) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/messages/conversations")
        return list(payload.get("conversations", []))

    async def list_messages(self, conversation: int) -> list[dict[str, Any]]:
        payload = await self._request("GET", "/messages", params={"conversation": conversation})
        return list(payload.get("messages", []))

    async def unread_count(self) -> int:
        payload = await self._request("GET", "/messages/unread-count")
        return int(payload.get("count", 0))

    async def send_message(self, to: int, content: str, **fields: Any) -> dict[str, Any]:
        body = {"to": to, "content": content, **fields}
        payload = await self._request("POST", "/messages", json_data=body)
        return dict(payload["message"])

    async def mark_all_read(self, conversation: int | None = None) -> int:
        body = {"conversation": conversation} if conversation is not None else None
        payload = await self._request("PUT", "/messages/mark-all-read", json_data=body)
        return int(payload.get("count", 0))
