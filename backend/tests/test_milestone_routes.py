"""Tests for milestone and escrow API routes."""

import pytest


@pytest.fixture
def milestones(client, assigned_job, employer_headers):
    """Two milestones (40% and 60%) on the assigned job."""
    response = client.post(
        f"/api/jobs/{assigned_job['id']}/milestones",
        json={
            "milestones": [
                {"title": "Sketches", "percentage": 40},
                {"title": "Final files", "percentage": 60, "description": "SVG and PNG"},
            ]
        },
        headers=employer_headers,
    )
    assert response.status_code == 201
    return response.json()


def url(job, milestone=None, action=None):
    path = f"/api/jobs/{job['id']}/milestones"
    if milestone:
        path += f"/{milestone['id']}"
    if action:
        path += f"/{action}"
    return path


class TestCreateMilestones:
    def test_amounts_and_order(self, milestones):
        assert [m["amount"] for m in milestones] == [40.0, 60.0]
        assert [m["order"] for m in milestones] == [1, 2]
        assert all(m["status"] == "pending" for m in milestones)

    def test_total_over_100(self, client, assigned_job, milestones, employer_headers):
        response = client.post(
            url(assigned_job),
            json={"milestones": [{"title": "Extra", "percentage": 10}]},
            headers=employer_headers,
        )

        assert response.status_code == 400
        assert "100%" in response.json()["message"]

    def test_open_job_rejected(self, client, open_job, employer_headers):
        response = client.post(
            url(open_job),
            json={"milestones": [{"title": "Too early", "percentage": 50}]},
            headers=employer_headers,
        )
        assert response.status_code == 409

    def test_freelancer_cannot_create(self, client, assigned_job, freelancer_headers):
        response = client.post(
            url(assigned_job),
            json={"milestones": [{"title": "Mine", "percentage": 50}]},
            headers=freelancer_headers,
        )
        assert response.status_code == 403

    def test_empty_list(self, client, assigned_job, employer_headers):
        response = client.post(url(assigned_job), json={"milestones": []}, headers=employer_headers)
        assert response.status_code == 400

    def test_fractional_percentage(self, client, assigned_job, employer_headers):
        response = client.post(
            url(assigned_job),
            json={"milestones": [{"title": "Half-ish", "percentage": 33.3}]},
            headers=employer_headers,
        )
        assert response.status_code == 400


class TestMilestoneReads:
    def test_list_and_get(self, client, assigned_job, milestones, freelancer_headers):
        listed = client.get(url(assigned_job), headers=freelancer_headers).json()
        single = client.get(url(assigned_job, milestones[1]), headers=freelancer_headers).json()

        assert [m["title"] for m in listed] == ["Sketches", "Final files"]
        assert single["description"] == "SVG and PNG"

    def test_outsider_forbidden(self, client, assigned_job, milestones, freelancer2_headers):
        assert client.get(url(assigned_job), headers=freelancer2_headers).status_code == 403

    def test_admin_can_read(self, client, assigned_job, milestones, admin_headers):
        assert client.get(url(assigned_job), headers=admin_headers).status_code == 200

    def test_missing_milestone(self, client, assigned_job, employer_headers):
        response = client.get(f"{url(assigned_job)}/nope", headers=employer_headers)

        assert response.status_code == 404
        assert response.json() == {"message": "Milestone not found"}


class TestMilestoneEdits:
    def test_update(self, client, assigned_job, milestones, employer_headers):
        response = client.put(
            url(assigned_job, milestones[0]), json={"title": "Rough sketches"}, headers=employer_headers
        )

        assert response.status_code == 200
        assert response.json()["title"] == "Rough sketches"
        assert response.json()["percentage"] == 40

    def test_delete_renumbers(self, client, assigned_job, milestones, employer_headers):
        response = client.delete(url(assigned_job, milestones[0]), headers=employer_headers)

        assert response.status_code == 204
        [remaining] = client.get(url(assigned_job), headers=employer_headers).json()
        assert remaining["title"] == "Final files"
        assert remaining["order"] == 1


class TestApprovalFlow:
    def test_full_flow_completes_job(self, client, assigned_job, milestones, employer_headers, freelancer_headers):
        for milestone in milestones:
            requested = client.post(
                url(assigned_job, milestone, "request-approval"), headers=freelancer_headers
            )
            assert requested.json()["status"] == "approval_requested"

        first = client.post(
            url(assigned_job, milestones[0], "approve"), json={"feedback": "Nice"}, headers=employer_headers
        ).json()
        escrow = client.get(f"/api/jobs/{assigned_job['id']}/escrow", headers=employer_headers).json()
        last = client.post(url(assigned_job, milestones[1], "approve"), json={}, headers=employer_headers).json()

        assert first["payment_amount"] == 40.0
        assert first["job_completed"] is False
        assert first["milestone"]["feedback"] == "Nice"
        assert escrow["released"] == 40.0
        assert escrow["held"] == 60.0
        assert escrow["progress_percentage"] == 40
        assert last["job_completed"] is True
        assert last["job"]["status"] == "completed"

    def test_approve_without_request(self, client, assigned_job, milestones, employer_headers):
        response = client.post(url(assigned_job, milestones[0], "approve"), json={}, headers=employer_headers)
        assert response.status_code == 409

    def test_employer_cannot_request_approval(self, client, assigned_job, milestones, employer_headers):
        response = client.post(url(assigned_job, milestones[0], "request-approval"), headers=employer_headers)
        assert response.status_code == 403

    def test_reject_needs_reason(self, client, assigned_job, milestones, employer_headers, freelancer_headers):
        client.post(url(assigned_job, milestones[0], "request-approval"), headers=freelancer_headers)

        missing = client.post(url(assigned_job, milestones[0], "reject"), json={}, headers=employer_headers)
        rejected = client.post(
            url(assigned_job, milestones[0], "reject"), json={"reason": "Wrong colours"}, headers=employer_headers
        )

        assert missing.status_code == 400
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["rejection_reason"] == "Wrong colours"

    def test_approved_milestone_is_frozen(self, client, assigned_job, milestones, employer_headers, freelancer_headers):
        client.post(url(assigned_job, milestones[0], "request-approval"), headers=freelancer_headers)
        client.post(url(assigned_job, milestones[0], "approve"), json={}, headers=employer_headers)

        update = client.put(url(assigned_job, milestones[0]), json={"title": "Changed"}, headers=employer_headers)
        delete = client.delete(url(assigned_job, milestones[0]), headers=employer_headers)

        assert update.status_code == 409
        assert delete.status_code == 409
