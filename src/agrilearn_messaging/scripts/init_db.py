"""Create the messaging tables and optionally seed a demo classroom."""
from __future__ import annotations

import argparse
import logging

from sqlalchemy.orm import Session

from agrilearn_messaging.core.security import create_access_token
from agrilearn_messaging.db.session import SessionLocal, create_tables
from agrilearn_messaging.models import Course, CourseEnrollment, User
from agrilearn_messaging.models.user import ROLE_STUDENT, ROLE_TEACHER

logger = logging.getLogger(__name__)


def seed_demo(db: Session) -> dict[str, User]:
    """Insert one teacher, one enrolled student and their course if absent."""
    existing = db.query(User).filter(User.email == "teacher@agrilearn.test").first()
    if existing is not None:
        student = db.query(User).filter(User.email == "student@agrilearn.test").one()
        return {"teacher": existing, "student": student}

    teacher = User(name="Demo Teacher", email="teacher@agrilearn.test", role=ROLE_TEACHER)
    student = User(name="Demo Student", email="student@agrilearn.test", role=ROLE_STUDENT)
    db.add_all([teacher, student])
    db.flush()

    course = Course(title="Soil Science 101", teacher_id=teacher.id)
    db.add(course)
    db.flush()
    db.add(CourseEnrollment(course_id=course.id, student_id=student.id))
    db.commit()
    return {"teacher": teacher, "student": student}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--seed", action="store_true", help="Insert a demo teacher, student and course")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    create_tables()
    logger.info("Database tables created")

    if args.seed:
        with SessionLocal() as db:
            users = seed_demo(db)
            for label, user in users.items():
                logger.info("%s id=%s token=%s", label, user.id, create_access_token(user.id))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
