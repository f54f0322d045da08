"""HTTP tests for /v1/activities."""

import uuid

from tests.helpers.seed import create_test_activity

NEW_ACTIVITY = {
    "title": "Week 3 quiz",
    "description": "Short timed quiz",
    "time_limit_seconds": 900,
    "questions": [
        {"question_id": "a", "prompt": "1 + 1 = ?", "correct_response": "2", "marks": 2},
        {"question_id": "b", "prompt": "Explain recursion.", "marks": 3},
    ],
}


def test_lecturer_creates_activity(client, auth_headers_lecturer):
    response = client.post("/v1/activities", json=NEW_ACTIVITY, headers=auth_headers_lecturer)

    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Week 3 quiz"
    assert data["time_limit_seconds"] == 900
    assert data["max_score"] == 5
    assert data["is_active"] is True
    assert [q["question_id"] for q in data["questions"]] == ["a", "b"]


def test_answer_key_is_never_returned(client, auth_headers_lecturer, auth_headers_student):
    created = client.post("/v1/activities", json=NEW_ACTIVITY, headers=auth_headers_lecturer).json()

    response = client.get(f"/v1/activities/{created['id']}", headers=auth_headers_student)

    assert response.status_code == 200
    for question in response.json()["questions"]:
        assert "correct_response" not in question


def test_student_cannot_create_activity(client, auth_headers_student):
    response = client.post("/v1/activities", json=NEW_ACTIVITY, headers=auth_headers_student)
    assert response.status_code == 403


def test_create_rejects_non_positive_time_limit(client, auth_headers_lecturer):
    response = client.post(
        "/v1/activities", json={**NEW_ACTIVITY, "time_limit_seconds": 0}, headers=auth_headers_lecturer
    )
    assert response.status_code == 422


def test_create_rejects_duplicate_question_ids(client, auth_headers_lecturer):
    questions = [{"question_id": "a", "prompt": "x"}, {"question_id": "a", "prompt": "y"}]
    response = client.post(
        "/v1/activities", json={**NEW_ACTIVITY, "questions": questions}, headers=auth_headers_lecturer
    )
    assert response.status_code == 422


def test_create_rejects_inverted_window(client, auth_headers_lecturer):
    body = {
        **NEW_ACTIVITY,
        "available_from": "2026-03-05T10:00:00",
        "available_until": "2026-03-05T09:00:00",
    }
    response = client.post("/v1/activities", json=body, headers=auth_headers_lecturer)
    assert response.status_code == 422


def test_students_only_list_active_activities(client, db, auth_headers_student, auth_headers_lecturer):
    create_test_activity(db, title="Open quiz")
    create_test_activity(db, title="Hidden quiz", is_active=False)

    student_titles = {a["title"] for a in client.get("/v1/activities", headers=auth_headers_student).json()}
    staff_titles = {a["title"] for a in client.get("/v1/activities", headers=auth_headers_lecturer).json()}

    assert student_titles == {"Open quiz"}
    assert staff_titles == {"Open quiz", "Hidden quiz"}


def test_update_activity(client, activity, auth_headers_lecturer):
    response = client.patch(
        f"/v1/activities/{activity.id}",
        json={"title": "Renamed", "is_active": False},
        headers=auth_headers_lecturer,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["title"] == "Renamed"
    assert data["is_active"] is False
    assert data["time_limit_seconds"] == 600


def test_update_rejects_inverted_window(client, activity, auth_headers_lecturer):
    response = client.patch(
        f"/v1/activities/{activity.id}",
        json={"available_from": "2026-03-05T10:00:00", "available_until": "2026-03-05T09:00:00"},
        headers=auth_headers_lecturer,
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "INVALID_WINDOW"


def test_get_unknown_activity(client, auth_headers_student):
    response = client.get(f"/v1/activities/{uuid.uuid4()}", headers=auth_headers_student)

    assert response.status_code == 404
    assert response.json()["error_code"] == "NOT_FOUND"
