"""HTTP client and polling helpers for consumers of the messaging API."""

from .http import MessagingClient, MessagingClientError
from .poller import ConversationPoller, PollSnapshot

__all__ = ["MessagingClient", "MessagingClientError", "ConversationPoller", "PollSnapshot"]
