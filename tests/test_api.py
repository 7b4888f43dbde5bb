from datetime import timedelta

import pytest
from starlette.websockets import WebSocketDisconnect

from api.routes.auth import create_access_token
from utils.clock import local_today


def _signup(client, email, role, name):
    response = client.post(
        "/api/auth/signup",
        json={
            "full_name": name,
            "email": email,
            "role": role,
            "password": "secret123",
            "confirm_password": "secret123",
        },
    )
    assert response.status_code == 201, response.text
    body = response.json()
    return body["user"], {"Authorization": f"Bearer {body['token']}"}, body["token"]


def _setup_classroom(client):
    teacher, teacher_headers, _ = _signup(client, "t@example.com", "teacher", "Tina Teacher")
    student, student_headers, student_token = _signup(client, "s@example.com", "student", "Sam Student")
    response = client.post("/api/classrooms", json={"name": "Biology 101"}, headers=teacher_headers)
    assert response.status_code == 201, response.text
    classroom = response.json()
    response = client.post(
        "/api/classrooms/join",
        json={"invitation_code": classroom["invitation_code"].lower()},
        headers=student_headers,
    )
    assert response.status_code == 200, response.text
    return teacher, teacher_headers, student, student_headers, student_token, classroom


def _create_task(client, headers, classroom_id, title, due_date, files=None):
    response = client.post(
        "/api/tasks",
        data={"classroom_id": classroom_id, "title": title, "due_date": due_date.isoformat()},
        files=files,
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    assert client.get("/api/health").json() == {"status": "ok"}


def test_auth_flow(client):
    user, headers, _ = _signup(client, "sam@example.com", "student", "Sam Student")

    duplicate = client.post(
        "/api/auth/signup",
        json={
            "full_name": "Sam Again",
            "email": "SAM@example.com",
            "role": "student",
            "password": "secret123",
            "confirm_password": "secret123",
        },
    )
    assert duplicate.status_code == 409

    wrong = client.post("/api/auth/signin", json={"email": "sam@example.com", "password": "nope!!"})
    assert wrong.status_code == 401
    assert wrong.json()["detail"] == "Invalid email or password"

    signin = client.post("/api/auth/signin", json={"email": "sam@example.com", "password": "secret123"})
    assert signin.status_code == 200
    assert signin.json()["user"]["user_id"] == user["user_id"]

    me = client.get("/api/auth/me", headers=headers)
    assert me.json()["user"]["email"] == "sam@example.com"
    assert "password_hash" not in me.json()["user"]

    assert client.get("/api/auth/me").status_code in (401, 403)
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401
    assert client.post("/api/auth/signout", headers=headers).json()["success"] is True


def test_classroom_join_flow(client):
    teacher, teacher_headers, student, student_headers, _, classroom = _setup_classroom(client)

    again = client.post(
        "/api/classrooms/join",
        json={"invitation_code": classroom["invitation_code"]},
        headers=student_headers,
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "You're already a member of this classroom"

    invalid = client.post(
        "/api/classrooms/join", json={"invitation_code": "ZZZZZZZZ"}, headers=student_headers
    )
    assert invalid.status_code == 400
    assert invalid.json()["detail"] == "Invalid invitation code"

    teacher_list = client.get("/api/classrooms", headers=teacher_headers).json()
    assert teacher_list["classrooms"][0]["student_count"] == 1

    student_list = client.get("/api/classrooms", headers=student_headers).json()
    assert student_list["memberships"][0]["classroom_name"] == "Biology 101"

    members = client.get(
        f"/api/classrooms/{classroom['classroom_id']}/members", headers=teacher_headers
    ).json()
    assert [m["student_id"] for m in members] == [student["user_id"]]

    forbidden = client.post("/api/classrooms", json={"name": "Nope"}, headers=student_headers)
    assert forbidden.status_code == 403
    short = client.post("/api/classrooms", json={"name": "ab"}, headers=teacher_headers)
    assert short.status_code == 422


def test_task_flow(client):
    teacher, teacher_headers, student, student_headers, _, classroom = _setup_classroom(client)
    tomorrow = local_today() + timedelta(days=1)

    task = _create_task(
        client,
        teacher_headers,
        classroom["classroom_id"],
        "Lab report",
        tomorrow,
        files={"document": ("worksheet.pdf", b"%PDF-1.4", "application/pdf")},
    )
    assert task["document_name"] == "worksheet.pdf"

    tasks = client.get("/api/tasks", headers=student_headers).json()
    assert [(t["title"], t["completed"]) for t in tasks] == [("Lab report", False)]

    document = client.get(f"/api/tasks/{task['task_id']}/document", headers=student_headers)
    assert document.status_code == 200
    assert document.content == b"%PDF-1.4"

    toggled = client.post(f"/api/tasks/{task['task_id']}/completion", headers=student_headers)
    assert toggled.json()["completed"] is True
    assert toggled.json()["completed_at"] is not None

    submitted = client.post(
        f"/api/tasks/{task['task_id']}/submission",
        files={"file": ("report.txt", b"my report", "text/plain")},
        headers=student_headers,
    )
    assert submitted.status_code == 200, submitted.text

    submissions = client.get(
        f"/api/tasks/{task['task_id']}/submissions", headers=teacher_headers
    ).json()
    assert [s["document_name"] for s in submissions] == ["report.txt"]

    download = client.get(
        f"/api/tasks/{task['task_id']}/submissions/{student['user_id']}/document",
        headers=teacher_headers,
    )
    assert download.content == b"my report"

    overdue = _create_task(
        client, teacher_headers, classroom["classroom_id"], "Old essay", local_today() - timedelta(days=1)
    )
    late = client.post(
        f"/api/tasks/{overdue['task_id']}/submission",
        files={"file": ("late.txt", b"late", "text/plain")},
        headers=student_headers,
    )
    assert late.status_code == 409


def test_notification_flow(client):
    teacher, teacher_headers, student, student_headers, student_token, classroom = _setup_classroom(client)
    _create_task(
        client, teacher_headers, classroom["classroom_id"], "Lab report", local_today() + timedelta(days=1)
    )

    derived = client.post("/api/notifications/derive", headers=student_headers).json()
    assert sorted(n["type"] for n in derived["notifications"]) == ["due_soon", "new_task"]
    assert derived["unread_count"] == 2

    rerun = client.post("/api/notifications/derive", headers=student_headers).json()
    assert len(rerun["notifications"]) == 2

    with client.websocket_connect(f"/api/notifications/ws?token={student_token}") as ws:
        snapshot = ws.receive_json()
        assert snapshot["type"] == "snapshot"
        assert snapshot["unread_count"] == 2

        _create_task(
            client, teacher_headers, classroom["classroom_id"], "Essay", local_today() + timedelta(days=7)
        )
        pushed = ws.receive_json()
        assert pushed["type"] == "notification"
        assert pushed["notification"]["type"] == "new_task"
        assert pushed["alert"]["title"] == "New Task"
        assert pushed["unread_count"] == 3

        ws.send_json({"action": "mark_read", "notification_id": pushed["notification"]["notification_id"]})
        read = ws.receive_json()
        assert read == {
            "type": "read",
            "notification_id": pushed["notification"]["notification_id"],
            "unread_count": 2,
        }

    listed = client.get("/api/notifications", headers=student_headers).json()
    assert listed["unread_count"] == 2

    other_id = listed["notifications"][0]["notification_id"]
    not_mine = client.post(f"/api/notifications/{other_id}/read", headers=teacher_headers)
    assert not_mine.status_code == 404
    mine = client.post(f"/api/notifications/{other_id}/read", headers=student_headers)
    assert mine.json()["read"] is True


def test_chat_flow(client):
    teacher, teacher_headers, student, student_headers, _, classroom = _setup_classroom(client)

    teachers = client.get("/api/chat/teachers", headers=student_headers).json()
    assert teachers[0]["teacher_id"] == teacher["user_id"]

    conversation = client.post(
        "/api/chat/conversations",
        json={"teacher_id": teacher["user_id"], "classroom_id": classroom["classroom_id"]},
        headers=student_headers,
    ).json()

    sent = client.post(
        f"/api/chat/conversations/{conversation['conversation_id']}/messages",
        data={"content": "Can I get an extension?"},
        headers=student_headers,
    )
    assert sent.status_code == 201, sent.text

    attachment = client.post(
        f"/api/chat/conversations/{conversation['conversation_id']}/messages",
        files={"file": ("schedule.txt", b"mon-fri", "text/plain")},
        headers=teacher_headers,
    ).json()

    messages = client.get(
        f"/api/chat/conversations/{conversation['conversation_id']}/messages",
        headers=teacher_headers,
    ).json()
    assert [m["sender_id"] for m in messages] == [student["user_id"], teacher["user_id"]]

    public_path = attachment["file_url"].split("http://testserver", 1)[1]
    assert client.get(public_path).content == b"mon-fri"

    empty = client.post(
        f"/api/chat/conversations/{conversation['conversation_id']}/messages",
        data={"content": ""},
        headers=student_headers,
    )
    assert empty.status_code == 400


def _open_conversation(client, student_headers, teacher, classroom):
    response = client.post(
        "/api/chat/conversations",
        json={"teacher_id": teacher["user_id"], "classroom_id": classroom["classroom_id"]},
        headers=student_headers,
    )
    assert response.status_code in (200, 201), response.text
    return response.json()


def test_token_for_unknown_user_is_rejected(client):
    token = create_access_token(data={"sub": "no-such-user"})

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "User not found"


def test_chat_socket_streams_posted_messages(client, feed):
    teacher, teacher_headers, student, student_headers, student_token, classroom = _setup_classroom(client)
    conversation = _open_conversation(client, student_headers, teacher, classroom)
    url = f"/api/chat/conversations/{conversation['conversation_id']}/ws?token={student_token}"

    with client.websocket_connect(url) as ws:
        assert feed.subscriber_count("messages") == 1
        sent = client.post(
            f"/api/chat/conversations/{conversation['conversation_id']}/messages",
            data={"content": "See you in class"},
            headers=teacher_headers,
        )
        assert sent.status_code == 201, sent.text

        frame = ws.receive_json()
        assert frame["type"] == "message"
        assert frame["message"]["content"] == "See you in class"
        assert frame["message"]["sender_id"] == teacher["user_id"]

    assert feed.subscriber_count("messages") == 0


def test_chat_socket_refuses_outsiders(client, feed):
    teacher, _, _, student_headers, _, classroom = _setup_classroom(client)
    conversation = _open_conversation(client, student_headers, teacher, classroom)
    _, _, outsider_token = _signup(client, "o@example.com", "student", "Olive Other")
    base = f"/api/chat/conversations/{conversation['conversation_id']}/ws"

    for token in ("junk", outsider_token):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(f"{base}?token={token}") as ws:
                ws.receive_json()
        assert exc_info.value.code == 1008

    assert feed.subscriber_count("messages") == 0


def test_notification_socket_reports_errors(client):
    _, _, _, _, student_token, _ = _setup_classroom(client)

    with client.websocket_connect(f"/api/notifications/ws?token={student_token}") as ws:
        assert ws.receive_json()["type"] == "snapshot"

        ws.send_json({"action": "mark_read", "notification_id": "missing"})

        assert ws.receive_json() == {
            "type": "error",
            "detail": "Notification 'missing' not found",
        }


def test_notification_socket_rejects_bad_token(client, feed):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/notifications/ws?token=junk") as ws:
            ws.receive_json()

    assert exc_info.value.code == 1008
    assert feed.subscriber_count("notifications") == 0
