"""Lookups against the user and course data owned by other services.

These are the only two collaborators the messaging core consults for identity
and enrollment. Everything permission-related goes through
`agrilearn_messaging.services.permissions` rather than querying these tables
directly.
"""
from __future__ import annotations

from collections.abc import Iterable, Sequence

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from agrilearn_messaging.models import Course, CourseEnrollment, User
from agrilearn_messaging.models.user import ROLE_TEACHER

__all__ = ["UserDirectory", "CourseDirectory"]


class UserDirectory:
    """Resolve user ids to public profiles."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def get_many(self, user_ids: Iterable[int]) -> dict[int, User]:
        """Return a mapping of id to user for every id that resolves."""
        ids = set(user_ids)
        if not ids:
            return {}
        rows = self.db.scalars(select(User).where(User.id.in_(ids))).all()
        return {user.id: user for user in rows}

    def teachers(self, *, exclude: int | None = None, search: str | None = None) -> Sequence[User]:
        stmt = select(User).where(User.role == ROLE_TEACHER)
        if exclude is not None:
            stmt = stmt.where(User.id != exclude)
        stmt = _apply_search(stmt, search)
        return self.db.scalars(stmt.order_by(User.name, User.id)).all()


class CourseDirectory:
    """Answer ownership and enrollment questions about courses."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def is_enrolled_with(self, teacher_id: int, student_id: int) -> bool:
        """Return True if the student is enrolled in any course the teacher owns."""
        stmt = select(
            exists()
            .where(CourseEnrollment.course_id == Course.id)
            .where(Course.teacher_id == teacher_id)
            .where(CourseEnrollment.student_id == student_id)
        )
        return bool(self.db.scalar(stmt))

    def students_of_teacher(self, teacher_id: int, *, search: str | None = None) -> Sequence[User]:
        stmt = (
            select(User)
            .join(CourseEnrollment, CourseEnrollment.student_id == User.id)
            .join(Course, Course.id == CourseEnrollment.course_id)
            .where(Course.teacher_id == teacher_id)
            .distinct()
        )
        stmt = _apply_search(stmt, search)
        return self.db.scalars(stmt.order_by(User.name, User.id)).all()

    def teachers_of_student(self, student_id: int, *, search: str | None = None) -> Sequence[User]:
        stmt = (
            select(User)
            .join(Course, Course.teacher_id == User.id)
            .join(CourseEnrollment, CourseEnrollment.course_id == Course.id)
            .where(CourseEnrollment.student_id == student_id)
            .where(User.role == ROLE_TEACHER)
            .distinct()
        )
        stmt = _apply_search(stmt, search)
        return self.db.scalars(stmt.order_by(User.name, User.id)).all()


def _apply_search(stmt, search: str | None):  # type: ignore[no-untyped-def]
    term = (search or "").strip()
    if not term:
        return stmt
    pattern = f"%{term}%"
    return stmt.where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
