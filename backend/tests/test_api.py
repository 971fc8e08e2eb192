from conftest import TRANSCRIPT, as_user

from meetwise.services.llm_gateway import LlmGatewayError


def _create_meeting(client, seed):
    response = client.post(
        "/meetings", json={"transcript": TRANSCRIPT, "teamId": seed.team.id}, headers=as_user(seed.leader)
    )
    assert response.status_code == 201, response.text
    return response.json()


def _task_id(client, seed, meeting_id, text="Prepare the budget report"):
    tasks = client.get("/tasks", params={"meetingId": meeting_id}, headers=as_user(seed.leader)).json()
    return next(t["id"] for t in tasks if t["task"] == text)


def _notifications(client, user):
    return client.get("/notifications", headers=as_user(user)).json()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_requests_without_known_user_are_unauthorized(client, seed):
    assert client.get("/tasks/assigned").status_code == 401
    assert client.get("/tasks/assigned", headers={"X-User-Id": "9999"}).status_code == 401
    assert client.get("/tasks/assigned", headers={"X-User-Id": "abc"}).status_code == 401


def test_create_meeting_returns_breakdown(client, seed):
    body = _create_meeting(client, seed)

    assert body["name"] == "Q3 Budget Sync"
    assert body["teamId"] == seed.team.id
    assert body["topicSegmentation"]["totalTopics"] == 2
    assert set(body["breakdown"]) == {
        "Tasks", "Decisions", "Questions", "Insights", "Deadlines", "Attendees", "Follow-ups", "Risks",
    }
    tasks = body["breakdown"]["Tasks"]
    assert any("John" in t["owner"] for t in tasks)


def test_member_cannot_upload_for_team(client, seed):
    response = client.post(
        "/meetings", json={"transcript": TRANSCRIPT, "teamId": seed.team.id}, headers=as_user(seed.alice)
    )

    assert response.status_code == 403
    assert response.json()["kind"] == "Forbidden"


def test_meeting_visibility_and_delete(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]

    assert client.get(f"/meetings/{meeting_id}", headers=as_user(seed.alice)).status_code == 200
    assert client.get(f"/meetings/{meeting_id}", headers=as_user(seed.outsider)).status_code == 403
    assert client.delete(f"/meetings/{meeting_id}", headers=as_user(seed.alice)).status_code == 403

    assert client.delete(f"/meetings/{meeting_id}", headers=as_user(seed.leader)).json() == {"ok": True}
    assert client.get(f"/meetings/{meeting_id}", headers=as_user(seed.leader)).status_code == 404


def test_reanalyze_meeting(client, seed, gateway):
    meeting = _create_meeting(client, seed)

    response = client.post(f"/meetings/{meeting['id']}/analyze", headers=as_user(seed.leader))

    assert response.status_code == 200
    body = response.json()
    assert body["version"] == meeting["version"] + 1
    assert len(body["breakdown"]["Tasks"]) == 2


def test_segment_topics_failure_is_bad_gateway(client, seed, gateway):
    meeting_id = _create_meeting(client, seed)["id"]
    gateway.segmentation = LlmGatewayError("quota exceeded")

    response = client.post(f"/meetings/{meeting_id}/segment-topics", headers=as_user(seed.leader))

    assert response.status_code == 502

    gateway.segmentation = TimeoutError("read timed out")
    response = client.post(f"/meetings/{meeting_id}/segment-topics", headers=as_user(seed.leader))
    assert response.status_code == 502


def test_segment_topics_with_non_finite_numbers(client, seed, gateway):
    meeting_id = _create_meeting(client, seed)["id"]
    gateway.segmentation = '{"totalTopics": Infinity, "topics": [{"id": 1e999, "estimatedMinutes": Infinity}]}'

    response = client.post(f"/meetings/{meeting_id}/segment-topics", headers=as_user(seed.leader))

    assert response.status_code == 200
    topic = response.json()["topicSegmentation"]["topics"][0]
    assert (topic["id"], topic["estimatedMinutes"]) == (1, 0.0)


def test_segment_topics(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]

    response = client.post(f"/meetings/{meeting_id}/segment-topics", headers=as_user(seed.leader))

    assert response.status_code == 200
    assert [t["title"] for t in response.json()["topicSegmentation"]["topics"]] == ["Budget", "Launch"]


def test_assign_submit_reject_approve_flow(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    task_id = _task_id(client, seed, meeting_id)

    assigned = client.patch(
        f"/tasks/{task_id}", json={"assigneeId": seed.alice.id, "dueDate": "2025-04-01"}, headers=as_user(seed.leader)
    )
    assert assigned.status_code == 200, assigned.text
    assert assigned.json()["assignee"] == {"id": seed.alice.id, "name": "Alice"}
    inbox = _notifications(client, seed.alice)
    assert inbox["unreadCount"] == 1
    assert inbox["notifications"][0]["message"] == 'You have been assigned a new task: "Prepare the budget report"'

    proof = client.post(
        f"/tasks/{task_id}/proof",
        json={"fileUrl": "https://files/report.pdf", "description": "Draft"},
        headers=as_user(seed.alice),
    )
    assert proof.status_code == 201
    assert proof.json()["status"] == "PENDING_APPROVAL"
    leader_inbox = _notifications(client, seed.leader)
    assert leader_inbox["unreadCount"] == 1
    assert leader_inbox["notifications"][0]["taskId"] == task_id

    rejected = client.patch(
        f"/tasks/{task_id}/status",
        json={"status": "REJECT", "comments": "needs more detail"},
        headers=as_user(seed.leader),
    )
    assert rejected.json()["status"] == "NEEDS_REWORK"
    assert rejected.json()["comments"] == "needs more detail"
    inbox = _notifications(client, seed.alice)
    assert inbox["unreadCount"] == 2
    assert "needs more detail" in inbox["notifications"][0]["message"]

    client.post(f"/tasks/{task_id}/proof", json={"fileUrl": "https://files/v2.pdf"}, headers=as_user(seed.alice))
    approved = client.patch(f"/tasks/{task_id}/status", json={"status": "APPROVE"}, headers=as_user(seed.leader))
    assert approved.json()["status"] == "COMPLETED"
    assert approved.json()["comments"] is None
    assert len(approved.json()["proofs"]) == 2

    assigned_tasks = client.get("/tasks/assigned", headers=as_user(seed.alice)).json()
    assert [t["id"] for t in assigned_tasks] == [task_id]


def test_invalid_transition_is_conflict(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    task_id = _task_id(client, seed, meeting_id)

    response = client.patch(f"/tasks/{task_id}/status", json={"status": "APPROVE"}, headers=as_user(seed.leader))

    assert response.status_code == 409
    assert "current status: OPEN" in response.json()["error"]


def test_unassign_with_null(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    task_id = _task_id(client, seed, meeting_id)
    client.patch(f"/tasks/{task_id}", json={"assigneeId": seed.alice.id}, headers=as_user(seed.leader))

    response = client.patch(f"/tasks/{task_id}", json={"assigneeId": None}, headers=as_user(seed.leader))

    assert response.status_code == 200
    assert response.json()["assignee"] is None
    assert client.patch(f"/tasks/{task_id}", json={}, headers=as_user(seed.leader)).status_code == 400


def test_edit_and_delete_task(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    task_id = _task_id(client, seed, meeting_id)

    edited = client.put(
        f"/tasks/{task_id}", json={"task": "Prepare the final report", "assigneeId": seed.bob.id}, headers=as_user(seed.leader)
    )
    assert edited.json()["task"] == "Prepare the final report"
    assert _notifications(client, seed.bob)["notifications"][0]["message"] == 'Task updated: "Prepare the final report"'

    bad = client.put(f"/tasks/{task_id}", json={"status": "COMPLETED"}, headers=as_user(seed.leader))
    assert bad.status_code == 400
    assert bad.json()["kind"] == "ValidationFailed"

    assert client.delete(f"/tasks/{task_id}", headers=as_user(seed.leader)).json() == {"ok": True}
    assert _notifications(client, seed.bob)["notifications"] == []


def test_create_task(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]

    response = client.post(
        "/tasks", json={"meetingId": meeting_id, "task": "Book venue", "dueDate": "not-a-date"}, headers=as_user(seed.leader)
    )

    assert response.status_code == 400
    response = client.post("/tasks", json={"meetingId": meeting_id, "task": "Book venue"}, headers=as_user(seed.leader))
    assert response.status_code == 201
    assert response.json()["status"] == "OPEN"


def test_mark_notifications_read(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    for text in ("Prepare the budget report", "Confirm hardware delivery"):
        task_id = _task_id(client, seed, meeting_id, text)
        client.patch(f"/tasks/{task_id}", json={"assigneeId": seed.alice.id}, headers=as_user(seed.leader))

    inbox = _notifications(client, seed.alice)
    first_id = inbox["notifications"][0]["id"]
    marked = client.patch("/notifications", json={"notificationIds": [first_id]}, headers=as_user(seed.alice))
    assert marked.json() == {"updated": 1, "unreadCount": 1}

    # Other users cannot mark someone else's notifications
    other = client.patch("/notifications", json={"markAll": True}, headers=as_user(seed.bob))
    assert other.json() == {"updated": 0, "unreadCount": 0}

    assert client.patch("/notifications", json={"markAll": True}, headers=as_user(seed.alice)).json()["unreadCount"] == 0
    assert client.patch("/notifications", json={}, headers=as_user(seed.alice)).status_code == 400
    unread = client.get("/notifications", params={"unreadOnly": True}, headers=as_user(seed.alice)).json()
    assert unread["notifications"] == []


def test_manage_attendees(client, seed):
    meeting_id = _create_meeting(client, seed)["id"]
    url = f"/meetings/{meeting_id}/attendees"

    listed = client.get(url, headers=as_user(seed.alice)).json()
    assert [a["name"] for a in listed] == ["Lena", "Alice", "Bob"]
    assert client.get(url, headers=as_user(seed.outsider)).status_code == 403

    added = client.post(url, json={"name": "Oscar"}, headers=as_user(seed.leader))
    assert added.status_code == 201
    assert added.json()["role"] == "PARTICIPANT"
    assert client.get(url, headers=as_user(seed.outsider)).status_code == 200
    assert client.post(url, json={"name": "Oscar"}, headers=as_user(seed.leader)).status_code == 400
    assert client.post(url, json={"name": "Zoe"}, headers=as_user(seed.alice)).status_code == 403

    lena_id = listed[0]["id"]
    refused = client.delete(url, params={"attendeeId": lena_id}, headers=as_user(seed.leader))
    assert refused.status_code == 400
    assert client.delete(url, headers=as_user(seed.leader)).status_code == 400

    removed = client.delete(url, params={"attendeeId": added.json()["id"]}, headers=as_user(seed.leader))
    assert removed.json() == {"ok": True}
    assert [a["name"] for a in client.get(url, headers=as_user(seed.leader)).json()] == ["Lena", "Alice", "Bob"]


def test_module_exposes_default_app():
    from fastapi import FastAPI

    from meetwise import main

    assert isinstance(main.app, FastAPI)
    assert any(getattr(route, "path", None) == "/healthz" for route in main.app.routes)
