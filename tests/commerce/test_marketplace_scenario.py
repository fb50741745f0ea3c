"""End-to-end walk through a job's whole life on the in-memory marketplace."""

from decimal import Decimal

import pytest

from freelancehub import Actor, Marketplace, Role
from freelancehub.commerce.milestones.service import MilestoneInput
from freelancehub.errors import AlreadyRatedError


def test_post_to_rating():
    market = Marketplace.in_memory()
    employer = Actor("emp-1", Role.EMPLOYER)
    alice = Actor("alice", Role.FREELANCER)
    bob = Actor("bob", Role.FREELANCER)

    job = market.jobs.create_job(employer, title="Landing page", description="One-page site", budget=200)
    market.jobs.apply_to_job(job.id, alice)
    market.jobs.apply_to_job(job.id, bob)

    job = market.jobs.select_freelancer(job.id, "alice", employer)
    assert job.status == "assigned"
    assert job.get_applicant("bob").application_status == "rejected"

    [milestone] = market.milestones.create_milestones(
        job.id, [MilestoneInput(title="Whole site", percentage=100)], employer
    )
    assert milestone.amount == Decimal("200.00")

    market.milestones.request_approval(job.id, milestone.id, alice)
    result = market.milestones.approve_milestone(job.id, milestone.id, employer, feedback="Ship it")

    assert result.job_completed
    job = market.jobs.get_job(job.id)
    assert job.status == "completed"
    assert market.milestones.escrow_summary(job.id, employer).held == Decimal("0.00")

    # Completed wins over the accepted application status
    [view] = market.jobs.get_applied_jobs(alice, "completed")
    assert view.application_status == "accepted"
    assert market.jobs.get_applied_jobs(alice, "all") == []

    rating = market.ratings.rate_freelancer(job.id, employer, 5, "Fast and clean")
    assert rating.to_id == "alice"
    with pytest.raises(AlreadyRatedError):
        market.ratings.rate_freelancer(job.id, employer, 5)

    statuses = [t.to_status for t in market.jobs.get_transitions(job.id, employer)]
    assert statuses == ["open", "assigned", "completed"]

    alice_inbox = {n.type for n in market.notifications.list_notifications(alice)}
    assert {
        "job_assigned",
        "milestones_created",
        "milestone_approved",
        "payment_released",
        "job_completed",
        "new_rating",
    } <= alice_inbox
