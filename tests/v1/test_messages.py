# mypy: ignore-errors
# tests/v1/test_messages.py
"""Tests for the message endpoints."""

from fastapi import status
from starlette.datastructures import UploadFile

from agrilearn_messaging.api.v1.dependencies import get_attachment_handler
from agrilearn_messaging.services import AttachmentHandler, LocalAttachmentStorage
from tests.conftest import API, auth_headers

MESSAGES = f"{API}/messages"


def _send(client, headers, to, content="Hello", **fields):
    return client.post(MESSAGES, json={"to": to, "content": content, **fields}, headers=headers)


def test_send_message_returns_camel_case_envelope(client, teacher, student, course, teacher_auth) -> None:
    """Sending returns 201 and the stored message with wire field names."""
    response = _send(client, teacher_auth, student.id, "Welcome", subject="Hi", tags=["intro"])

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["success"] is True
    message = body["message"]
    assert message["from"] == teacher.id
    assert message["to"] == student.id
    assert message["content"] == "Welcome"
    assert message["read"] is False
    assert message["readAt"] is None
    assert message["messageType"] == "text"
    assert message["priority"] == "normal"
    assert message["tags"] == ["intro"]
    assert message["attachments"] == []
    assert "createdAt" in message


def test_send_requires_authentication(client, student) -> None:
    response = client.post(MESSAGES, json={"to": student.id, "content": "Hi"})
    assert response.status_code in {status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN}
    assert response.json()["success"] is False


def test_send_to_unrelated_student_is_forbidden(client, student, other_student, student_auth) -> None:
    response = _send(client, student_auth, other_student.id)

    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json() == {"success": False, "message": "You are not allowed to message this user"}


def test_send_to_unknown_user(client, teacher_auth) -> None:
    response = _send(client, teacher_auth, 999_999)

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["message"] == "Recipient not found"


def test_send_validation_errors(client, teacher, student, course, teacher_auth) -> None:
    too_long = _send(client, teacher_auth, student.id, "x" * 5001)
    empty = _send(client, teacher_auth, student.id, "   ")
    missing_to = client.post(MESSAGES, json={"content": "Hi"}, headers=teacher_auth)
    bad_priority = _send(client, teacher_auth, student.id, priority="critical")
    to_self = _send(client, teacher_auth, teacher.id)

    for response in (too_long, empty, missing_to, bad_priority, to_self):
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["success"] is False


def test_send_multipart_with_attachments(client, student, course, teacher_auth, upload_dir) -> None:
    response = client.post(
        MESSAGES,
        data={"to": str(student.id), "content": "Reading list", "priority": "high", "tags": ["week-1", "pdf"]},
        files=[
            ("attachments", ("week1.pdf", b"%PDF-1.4", "application/pdf")),
            ("attachments", ("notes.txt", b"bring boots", "text/plain")),
        ],
        headers=teacher_auth,
    )

    assert response.status_code == status.HTTP_201_CREATED
    message = response.json()["message"]
    assert message["priority"] == "high"
    assert message["tags"] == ["week-1", "pdf"]
    assert [a["originalName"] for a in message["attachments"]] == ["week1.pdf", "notes.txt"]
    assert message["attachments"][0]["mimeType"] == "application/pdf"
    assert message["attachments"][1]["size"] == len(b"bring boots")
    assert (upload_dir / message["attachments"][0]["filename"]).exists()


def test_send_multipart_rejects_disallowed_file(client, student, course, teacher_auth, upload_dir) -> None:
    response = client.post(
        MESSAGES,
        data={"to": str(student.id), "content": "Run this"},
        files=[("attachments", ("setup.exe", b"MZ", "application/octet-stream"))],
        headers=teacher_auth,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert not upload_dir.exists() or not any(upload_dir.iterdir())


def test_conversation_messages_and_list(client, teacher, student, course, teacher_auth, student_auth) -> None:
    _send(client, teacher_auth, student.id, "Welcome")
    _send(client, student_auth, teacher.id, "Thanks")

    response = client.get(MESSAGES, params={"conversation": teacher.id}, headers=student_auth)

    assert response.status_code == status.HTTP_200_OK
    assert [m["content"] for m in response.json()["messages"]] == ["Welcome", "Thanks"]

    conversations = client.get(f"{MESSAGES}/conversations", headers=student_auth).json()
    assert conversations["success"] is True
    [entry] = conversations["conversations"]
    assert entry["user"]["id"] == teacher.id
    assert entry["user"]["name"] == "Tara Teacher"
    assert entry["lastMessage"] == "Thanks"
    assert entry["unreadCount"] == 1
    assert "lastMessageDate" in entry


def test_get_message_marks_read_for_recipient(client, student, course, teacher_auth, student_auth) -> None:
    message_id = _send(client, teacher_auth, student.id).json()["message"]["id"]

    as_sender = client.get(f"{MESSAGES}/{message_id}", headers=teacher_auth)
    assert as_sender.json()["message"]["read"] is False

    as_recipient = client.get(f"{MESSAGES}/{message_id}", headers=student_auth)
    assert as_recipient.status_code == status.HTTP_200_OK
    assert as_recipient.json()["message"]["read"] is True
    assert as_recipient.json()["message"]["readAt"] is not None


def test_get_message_errors(client, student, other_student, course, teacher_auth) -> None:
    message_id = _send(client, teacher_auth, student.id).json()["message"]["id"]

    outsider = client.get(f"{MESSAGES}/{message_id}", headers=auth_headers(other_student))
    missing = client.get(f"{MESSAGES}/999999", headers=teacher_auth)

    assert outsider.status_code == status.HTTP_403_FORBIDDEN
    assert outsider.json()["message"] == "Access denied"
    assert missing.status_code == status.HTTP_404_NOT_FOUND


def test_mark_read_and_unread_count(client, student, course, teacher_auth, student_auth) -> None:
    message_id = _send(client, teacher_auth, student.id).json()["message"]["id"]
    _send(client, teacher_auth, student.id, "Second")

    count = client.get(f"{MESSAGES}/unread-count", headers=student_auth).json()
    assert count == {"success": True, "count": 2}

    by_sender = client.put(f"{MESSAGES}/{message_id}/read", headers=teacher_auth)
    assert by_sender.status_code == status.HTTP_403_FORBIDDEN

    response = client.put(f"{MESSAGES}/{message_id}/read", headers=student_auth)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True
    assert client.get(f"{MESSAGES}/unread-count", headers=student_auth).json()["count"] == 1


def test_mark_all_read(client, teacher, other_teacher, student, course, teacher_auth, student_auth) -> None:
    _send(client, student_auth, teacher.id, "Question")
    _send(client, auth_headers(other_teacher), teacher.id, "Staff meeting")

    scoped = client.put(f"{MESSAGES}/mark-all-read", json={"conversation": student.id}, headers=teacher_auth)
    assert scoped.json() == {"success": True, "count": 1}

    everything = client.put(f"{MESSAGES}/mark-all-read", headers=teacher_auth)
    assert everything.json() == {"success": True, "count": 1}
    assert client.get(f"{MESSAGES}/unread-count", headers=teacher_auth).json()["count"] == 0


def test_notifications_badges(client, teacher, student, course, teacher_auth, student_auth) -> None:
    _send(client, teacher_auth, student.id, "One")
    _send(client, teacher_auth, student.id, "Two")

    badges = client.get(f"{MESSAGES}/notifications", headers=student_auth).json()

    assert badges == {"success": True, "unreadMessages": 2, "unreadConversations": 1}


def test_thread_endpoint(client, teacher, student, course, teacher_auth, student_auth) -> None:
    root_id = _send(client, teacher_auth, student.id, "Field trip").json()["message"]["id"]
    reply = _send(client, student_auth, teacher.id, "What time?", replyTo=root_id).json()["message"]
    assert reply["threadId"] == root_id
    assert reply["replyTo"] == root_id

    response = client.get(f"{MESSAGES}/thread/{reply['id']}", headers=student_auth)

    assert response.status_code == status.HTTP_200_OK
    messages = response.json()["messages"]
    assert [m["id"] for m in messages] == [root_id, reply["id"]]
    assert messages[0]["read"] is True
    assert client.get(f"{MESSAGES}/unread-count", headers=student_auth).json()["count"] == 0


def test_messageable_users(client, teacher, student, course, student_auth, teacher_auth) -> None:
    as_student = client.get(f"{MESSAGES}/users", headers=student_auth).json()
    assert [u["id"] for u in as_student["users"]] == [teacher.id]

    as_teacher = client.get(f"{MESSAGES}/users", params={"search": "sam"}, headers=teacher_auth).json()
    assert [u["name"] for u in as_teacher["users"]] == ["Sam Student"]
    assert set(as_teacher["users"][0]) == {"id", "name", "email", "role", "avatar"}


def test_flags_update(client, student, course, teacher_auth, student_auth) -> None:
    message_id = _send(client, teacher_auth, student.id).json()["message"]["id"]

    response = client.put(f"{MESSAGES}/{message_id}/flags", json={"starred": True}, headers=student_auth)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["message"]["starred"] is True
    starred = client.get(MESSAGES, params={"starred": "true"}, headers=student_auth).json()
    assert [m["id"] for m in starred["messages"]] == [message_id]


def test_delete_message(client, student, other_student, course, teacher_auth, student_auth) -> None:
    message_id = _send(client, teacher_auth, student.id).json()["message"]["id"]

    outsider = client.delete(f"{MESSAGES}/{message_id}", headers=auth_headers(other_student))
    assert outsider.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"{MESSAGES}/{message_id}", headers=student_auth)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["success"] is True
    assert client.get(f"{MESSAGES}/{message_id}", headers=teacher_auth).status_code == status.HTTP_404_NOT_FOUND


def test_delete_conversation(client, teacher, student, course, teacher_auth, student_auth) -> None:
    _send(client, teacher_auth, student.id, "Welcome")
    _send(client, student_auth, teacher.id, "Thanks")

    response = client.delete(f"{MESSAGES}/conversation/{student.id}", headers=teacher_auth)

    assert response.json() == {"success": True, "count": 2}
    assert client.get(f"{MESSAGES}/conversations", headers=student_auth).json()["conversations"] == []


def test_send_multipart_rejects_too_many_files(client, student, course, teacher_auth, upload_dir, mocker) -> None:
    """The file count is checked before any upload is read."""
    read_spy = mocker.spy(UploadFile, "read")
    files = [("attachments", (f"week{i}.pdf", b"%PDF-1.4", "application/pdf")) for i in range(6)]

    response = client.post(
        MESSAGES,
        data={"to": str(student.id), "content": "Reading list"},
        files=files,
        headers=teacher_auth,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "A message can carry at most 5 attachments"
    assert read_spy.call_count == 0
    assert not upload_dir.exists() or not any(upload_dir.iterdir())


def test_send_multipart_rejects_oversized_file(app, client, student, course, teacher_auth, upload_dir, mocker) -> None:
    app.dependency_overrides[get_attachment_handler] = lambda: AttachmentHandler(
        LocalAttachmentStorage(upload_dir, base_url="/uploads/messages"), max_bytes=16
    )
    read_spy = mocker.spy(UploadFile, "read")

    response = client.post(
        MESSAGES,
        data={"to": str(student.id), "content": "Big file"},
        files=[("attachments", ("scan.pdf", b"x" * 17, "application/pdf"))],
        headers=teacher_auth,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["message"] == "Attachment exceeds size limit: scan.pdf"
    assert read_spy.call_count == 0
    assert client.get(f"{MESSAGES}/unread-count", headers=auth_headers(student)).json()["count"] == 0
