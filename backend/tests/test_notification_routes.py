"""Tests for notification API routes."""

import pytest

from freelancehub.notifications.models import NotificationType


@pytest.fixture
def inbox(market):
    """Three notifications for the test freelancer and one for the employer."""
    notify = market.notifications.notify
    return [
        notify("usr_TEST_FREELANCER", NotificationType.NEW_MESSAGE, "Hi", "Hello", sender_id="usr_TEST_EMPLOYER"),
        notify("usr_TEST_FREELANCER", NotificationType.JOB_ASSIGNED, "Selected", "You got it", job_id="job-1"),
        notify("usr_TEST_FREELANCER", NotificationType.NEW_RATING, "Rated", "5 stars"),
        notify("usr_TEST_EMPLOYER", NotificationType.NEW_APPLICATION, "Applicant", "Someone applied"),
    ]


class TestListNotifications:
    def test_list_own(self, client, inbox, freelancer_headers):
        response = client.get("/api/notifications", headers=freelancer_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 3
        assert all(n["recipient_id"] == "usr_TEST_FREELANCER" for n in data)
        assert all(n["time_ago"] == "Just now" for n in data)

    def test_filter_by_type(self, client, inbox, freelancer_headers):
        data = client.get(
            "/api/notifications", params={"type": "job_assigned"}, headers=freelancer_headers
        ).json()

        assert [n["link"] for n in data] == ["/jobs/job-1"]

    def test_unknown_type(self, client, inbox, freelancer_headers):
        response = client.get("/api/notifications", params={"type": "bogus"}, headers=freelancer_headers)
        assert response.status_code == 400

    def test_limit_bounds(self, client, freelancer_headers):
        response = client.get("/api/notifications", params={"limit": 500}, headers=freelancer_headers)
        assert response.status_code == 400

    def test_requires_auth(self, client):
        assert client.get("/api/notifications").status_code == 401


class TestReadState:
    def test_unread_count_and_mark_read(self, client, inbox, freelancer_headers):
        assert client.get("/api/notifications/unread-count", headers=freelancer_headers).json() == {"count": 3}

        response = client.put(f"/api/notifications/{inbox[0].id}", headers=freelancer_headers)

        assert response.json() == {"message": "Notification marked as read"}
        assert client.get("/api/notifications/unread-count", headers=freelancer_headers).json() == {"count": 2}
        unread = client.get("/api/notifications", params={"unread": True}, headers=freelancer_headers).json()
        assert inbox[0].id not in {n["id"] for n in unread}

    def test_mark_someone_elses(self, client, inbox, employer_headers):
        response = client.put(f"/api/notifications/{inbox[0].id}", headers=employer_headers)
        assert response.status_code == 403

    def test_mark_missing(self, client, freelancer_headers):
        response = client.put("/api/notifications/missing", headers=freelancer_headers)

        assert response.status_code == 404
        assert response.json() == {"message": "Notification not found"}

    def test_mark_read_multiple(self, client, inbox, freelancer_headers):
        response = client.put(
            "/api/notifications/mark-read-multiple",
            json={"ids": [inbox[0].id, inbox[1].id, inbox[3].id]},
            headers=freelancer_headers,
        )

        assert response.json()["count"] == 2

    def test_mark_read_multiple_requires_ids(self, client, freelancer_headers):
        response = client.put("/api/notifications/mark-read-multiple", json={"ids": []}, headers=freelancer_headers)
        assert response.status_code == 400

    def test_read_all(self, client, inbox, freelancer_headers, employer_headers):
        response = client.put("/api/notifications/read-all", headers=freelancer_headers)

        assert response.json()["count"] == 3
        assert client.get("/api/notifications/unread-count", headers=employer_headers).json() == {"count": 1}

    def test_archive_multiple(self, client, inbox, freelancer_headers):
        client.put("/api/notifications/archive-multiple", json={"ids": [inbox[2].id]}, headers=freelancer_headers)

        default = client.get("/api/notifications", headers=freelancer_headers).json()
        everything = client.get("/api/notifications", params={"archived": True}, headers=freelancer_headers).json()

        assert len(default) == 2
        assert len(everything) == 3


class TestDelete:
    def test_delete(self, client, inbox, freelancer_headers):
        response = client.delete(f"/api/notifications/{inbox[0].id}", headers=freelancer_headers)

        assert response.json() == {"message": "Notification deleted"}
        assert len(client.get("/api/notifications", headers=freelancer_headers).json()) == 2

    def test_delete_multiple(self, client, inbox, freelancer_headers):
        response = client.request(
            "DELETE",
            "/api/notifications/multiple",
            json={"ids": [inbox[0].id, inbox[1].id, inbox[3].id]},
            headers=freelancer_headers,
        )

        assert response.json()["count"] == 2


class TestEventNotifications:
    def test_application_notifies_employer(self, client, open_job, freelancer_headers, employer_headers):
        client.post(f"/api/jobs/{open_job['id']}/apply", headers=freelancer_headers)

        data = client.get("/api/notifications", headers=employer_headers).json()

        assert [n["type"] for n in data] == ["new_application"]
        assert data[0]["job_id"] == open_job["id"]
        assert data[0]["sender_id"] == "usr_TEST_FREELANCER"
