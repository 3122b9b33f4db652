# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Callable, Generator, Iterator
from itertools import count
from pathlib import Path

import pytest

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PYTEST_RUNNING", "true")

from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from agrilearn_messaging.api.v1 import dependencies as api_dependencies
from agrilearn_messaging.core.security import create_access_token
from agrilearn_messaging.db.session import Base
from agrilearn_messaging.db.session import get_db as app_get_session
from agrilearn_messaging.main import app as fastapi_app
from agrilearn_messaging.models import Course, CourseEnrollment, User
from agrilearn_messaging.models.user import ROLE_ADMIN, ROLE_STUDENT, ROLE_TEACHER
from agrilearn_messaging.services import (
    AttachmentHandler,
    LocalAttachmentStorage,
    MessageStore,
    PermissionGate,
)

TEST_DB_URL = "sqlite://"
API = "/api/v1"

_USER_COUNTER = count(1)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    SessionLocal = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()

        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture()
def attachment_handler(upload_dir: Path) -> AttachmentHandler:
    """Attachment handler writing into a per-test directory."""
    return AttachmentHandler(LocalAttachmentStorage(upload_dir, base_url="/uploads/messages"))


@pytest.fixture(autouse=True)
def override_dependencies(
    app: FastAPI, db_session: Session, attachment_handler: AttachmentHandler
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[api_dependencies.get_attachment_handler] = lambda: attachment_handler
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(api_dependencies.get_attachment_handler, None)


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture()
def make_user(db_session: Session) -> Callable[..., User]:
    """Return a factory persisting users with unique emails."""

    def _make_user(name: str, role: str = ROLE_STUDENT, email: str | None = None) -> User:
        serial = next(_USER_COUNTER)
        user = User(
            name=name,
            email=email or f"user{serial}@agrilearn.test",
            role=role,
            avatar=None,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def enroll(db_session: Session) -> Callable[[User, User], Course]:
    """Return a helper creating a course owned by a teacher with one student enrolled."""

    def _enroll(teacher: User, student: User, title: str = "Crop Management") -> Course:
        course = Course(title=title, teacher_id=teacher.id)
        db_session.add(course)
        db_session.flush()
        db_session.add(CourseEnrollment(course_id=course.id, student_id=student.id))
        db_session.commit()
        return course

    return _enroll


@pytest.fixture()
def teacher(make_user) -> User:
    return make_user("Tara Teacher", ROLE_TEACHER)


@pytest.fixture()
def other_teacher(make_user) -> User:
    return make_user("Omar Teacher", ROLE_TEACHER)


@pytest.fixture()
def student(make_user) -> User:
    return make_user("Sam Student", ROLE_STUDENT)


@pytest.fixture()
def other_student(make_user) -> User:
    return make_user("Sue Student", ROLE_STUDENT)


@pytest.fixture()
def admin(make_user) -> User:
    return make_user("Ada Admin", ROLE_ADMIN)


@pytest.fixture()
def course(enroll, teacher: User, student: User) -> Course:
    """Course owned by `teacher` with `student` enrolled."""
    return enroll(teacher, student)


@pytest.fixture()
def gate(db_session: Session) -> PermissionGate:
    return PermissionGate.for_session(db_session)


@pytest.fixture()
def store(db_session: Session, gate: PermissionGate, attachment_handler: AttachmentHandler) -> MessageStore:
    return MessageStore(db_session, gate=gate, attachments=attachment_handler)


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture()
def teacher_auth(teacher: User) -> dict[str, str]:
    """Return authorization headers for the teacher."""
    return auth_headers(teacher)


@pytest.fixture()
def student_auth(student: User) -> dict[str, str]:
    """Return authorization headers for the student."""
    return auth_headers(student)
