from datetime import datetime, timedelta, timezone

import pytest

from property_crm.models.maintenance import MaintenanceRequest
from tests.conftest import CRON_HEADERS


@pytest.fixture()
def request_id(client, headers, property_id):
    r = client.post(
        "/maintenance",
        json={"property_id": property_id, "title": "Leaking tap", "priority": "high", "scheduled_date": "2030-01-10"},
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["id"]


def _age(db, request_id, days):
    db.query(MaintenanceRequest).filter(MaintenanceRequest.id == request_id).update(
        {MaintenanceRequest.updated_at: datetime.now(timezone.utc) - timedelta(days=days)},
        synchronize_session=False,
    )
    db.commit()


class TestRequests:

    def test_create_notifies_landlord(self, client, headers, request_id):
        notes = client.get("/notifications", headers=headers).json()
        assert any(n["notification_type"] == "maintenance" for n in notes)

    def test_completion_stamps_completed_date(self, client, headers, request_id):
        body = client.patch(f"/maintenance/{request_id}", json={"status": "completed"}, headers=headers).json()
        assert body["completed_date"] is not None

    def test_unknown_tenant_rejected(self, client, headers, property_id):
        r = client.post("/maintenance", json={"property_id": property_id, "title": "x", "tenant_id": 999}, headers=headers)
        assert r.status_code == 404

    def test_filters(self, client, headers, request_id):
        assert len(client.get("/maintenance?priority=high", headers=headers).json()) == 1
        assert client.get("/maintenance?status=completed", headers=headers).json() == []


class TestFollowUps:
    """Open requests untouched for five days get one follow-up email."""

    def test_requires_cron_secret(self, client):
        assert client.post("/maintenance/send-follow-ups").status_code == 401

    def test_stale_request_followed_up_once(self, client, db, headers, request_id, outbox):
        _age(db, request_id, 6)

        body = client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()
        assert body == {"stale_requests": 1, "sent": 1, "failed": 0}
        assert "Leaking tap" in outbox.to("landlord@example.com")[0]["subject"]
        assert client.get(f"/maintenance/{request_id}", headers=headers).json()["follow_up_sent"] is True

        again = client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()
        assert again["stale_requests"] == 0

    def test_fresh_requests_are_left_alone(self, client, db, request_id, outbox):
        _age(db, request_id, 4)
        assert client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()["stale_requests"] == 0
        assert outbox.messages == []

    def test_update_restarts_follow_up_clock(self, client, db, headers, request_id, outbox):
        _age(db, request_id, 6)
        client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS)

        body = client.patch(f"/maintenance/{request_id}", json={"assigned_to": "Pete Plumber"}, headers=headers).json()
        assert body["follow_up_sent"] is False

    def test_failed_email_is_retried(self, client, db, request_id, outbox):
        _age(db, request_id, 6)
        outbox.fail = True
        assert client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()["failed"] == 1

        outbox.fail = False
        assert client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()["sent"] == 1

    def test_completed_requests_are_not_stale(self, client, db, headers, request_id, outbox):
        client.patch(f"/maintenance/{request_id}", json={"status": "completed"}, headers=headers)
        _age(db, request_id, 30)
        assert client.post("/maintenance/send-follow-ups", headers=CRON_HEADERS).json()["stale_requests"] == 0


class TestTasks:

    def test_task_from_request(self, client, headers, request_id, property_id):
        r = client.post(f"/maintenance/{request_id}/create-task", json={}, headers=headers)
        assert r.status_code == 201
        task = r.json()
        assert task["title"] == "Maintenance: Leaking tap"
        assert task["priority"] == "high"
        assert task["due_date"] == "2030-01-10"
        assert task["property_id"] == property_id
        assert "Sea View Cottage" in task["description"]

        assert client.get(f"/maintenance/{request_id}", headers=headers).json()["status"] == "in_progress"
        listed = client.get(f"/tasks?maintenance_request_id={request_id}", headers=headers).json()
        assert [t["id"] for t in listed] == [task["id"]]

    def test_undated_tasks_sort_last(self, client, headers):
        client.post("/tasks", json={"title": "Someday"}, headers=headers)
        client.post("/tasks", json={"title": "Soon", "due_date": "2030-01-01"}, headers=headers)
        assert [t["title"] for t in client.get("/tasks", headers=headers).json()] == ["Soon", "Someday"]

    def test_task_lifecycle(self, client, headers):
        task = client.post("/tasks", json={"title": "Paint fence"}, headers=headers).json()
        assert task["status"] == "todo"
        done = client.patch(f"/tasks/{task['id']}", json={"status": "done"}, headers=headers).json()
        assert done["status"] == "done"
        assert client.delete(f"/tasks/{task['id']}", headers=headers).status_code == 204
        assert client.get("/tasks", headers=headers).json() == []

    def test_required_fields_cannot_be_nulled(self, client, headers, request_id):
        task = client.post("/tasks", json={"title": "Paint fence"}, headers=headers).json()
        assert client.patch(f"/tasks/{task['id']}", json={"status": None}, headers=headers).status_code == 422
        assert client.patch(f"/maintenance/{request_id}", json={"title": None}, headers=headers).status_code == 422
        assert client.patch(f"/maintenance/{request_id}", json={"assigned_to": None}, headers=headers).status_code == 200
