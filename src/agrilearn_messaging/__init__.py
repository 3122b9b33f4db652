"""AgriLearn messaging service: conversations, threads and unread tracking."""

__version__ = "0.1.0"
