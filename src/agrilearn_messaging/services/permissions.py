"""Who-may-message-whom policy.

This is the single place that joins roles with course enrollment. Route
handlers and other services ask the gate; they never re-derive the relation.

Policy:
    - teacher -> student and student -> teacher: allowed when the student is
      enrolled in at least one course owned by the teacher.
    - teacher -> teacher: always allowed.
    - student -> student and every other role pairing: denied.
    - unknown users on either side: denied.
"""
from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.orm import Session

from agrilearn_messaging.models import User
from agrilearn_messaging.services.directory import CourseDirectory, UserDirectory

logger = logging.getLogger(__name__)


class PermissionGate:
    """Evaluate messaging permissions using the directory collaborators."""

    def __init__(
        self,
        users: UserDirectory,
        courses: CourseDirectory,
    ) -> None:
        self.users = users
        self.courses = courses

    @classmethod
    def for_session(cls, db: Session) -> PermissionGate:
        return cls(UserDirectory(db), CourseDirectory(db))

    def can_message(self, sender_id: int, recipient_id: int) -> bool:
        """Return True if `sender_id` may send a message to `recipient_id`."""
        if sender_id == recipient_id:
            return False

        sender = self.users.get(sender_id)
        recipient = self.users.get(recipient_id)
        if sender is None or recipient is None:
            logger.debug("Denying message %s -> %s: unknown user", sender_id, recipient_id)
            return False

        return self.users_can_message(sender, recipient)

    def users_can_message(self, sender: User, recipient: User) -> bool:
        """Apply the policy to already-resolved users."""
        if sender.id == recipient.id:
            return False
        if sender.is_teacher and recipient.is_teacher:
            return True
        if sender.is_teacher and recipient.is_student:
            return self.courses.is_enrolled_with(sender.id, recipient.id)
        if sender.is_student and recipient.is_teacher:
            return self.courses.is_enrolled_with(recipient.id, sender.id)
        return False

    def list_messageable(self, caller_id: int, search: str | None = None) -> Sequence[User]:
        """Return the users the caller is allowed to start a conversation with.

        Teachers see their enrolled students plus every other teacher; students
        see the teachers of their courses. Any other caller gets nothing.
        """
        caller = self.users.get(caller_id)
        if caller is None:
            return []

        if caller.is_teacher:
            students = self.courses.students_of_teacher(caller.id, search=search)
            teachers = self.users.teachers(exclude=caller.id, search=search)
            merged = {user.id: user for user in (*students, *teachers)}
            return sorted(merged.values(), key=lambda user: (user.name.lower(), user.id))

        if caller.is_student:
            return self.courses.teachers_of_student(caller.id, search=search)

        return []
