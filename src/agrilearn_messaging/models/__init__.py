# src/agrilearn_messaging/models/__init__.py
"""SQLAlchemy models for the messaging service."""

from .course import Course, CourseEnrollment
from .message import Message, MessageAttachment
from .user import User

__all__ = [
    "Course", "CourseEnrollment",
    "Message", "MessageAttachment",
    "User",
]
