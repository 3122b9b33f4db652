# tests/v1/test_dependencies.py
"""Tests for API dependencies module."""

from datetime import timedelta

from fastapi import status
from jose import jwt

from agrilearn_messaging.core.security import create_access_token
from agrilearn_messaging.core.settings import settings
from agrilearn_messaging.db.time import utcnow
from tests.conftest import API

UNREAD_COUNT = f"{API}/messages/unread-count"


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_valid_token_resolves_user(client, teacher) -> None:
    response = client.get(UNREAD_COUNT, headers=_bearer(create_access_token(teacher.id)))
    assert response.status_code == status.HTTP_200_OK


def test_garbage_token_is_rejected(client) -> None:
    response = client.get(UNREAD_COUNT, headers=_bearer("not-a-jwt"))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json() == {"success": False, "message": "Could not validate credentials"}


def test_token_signed_with_other_key_is_rejected(client, teacher) -> None:
    token = jwt.encode({"sub": str(teacher.id)}, "another-secret", algorithm=settings.jwt_algorithm)
    response = client.get(UNREAD_COUNT, headers=_bearer(token))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_expired_token_is_rejected(client, teacher) -> None:
    expired = utcnow() - timedelta(minutes=5)
    token = jwt.encode(
        {"sub": str(teacher.id), "exp": expired},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    response = client.get(UNREAD_COUNT, headers=_bearer(token))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_non_numeric_subject_is_rejected(client) -> None:
    token = jwt.encode({"sub": "alice"}, settings.secret_key, algorithm=settings.jwt_algorithm)
    response = client.get(UNREAD_COUNT, headers=_bearer(token))
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_unknown_user_is_rejected(client) -> None:
    response = client.get(UNREAD_COUNT, headers=_bearer(create_access_token(424242)))

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["message"] == "User not found"
