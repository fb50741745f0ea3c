"""
Concurrency tests for the conditional-update primitives.

Each test fires competing requests from threads and checks that exactly
one wins and the losers get a conflict, never a half-applied write.
"""

import concurrent.futures
import threading

import pytest

from freelancehub import Actor, Role
from freelancehub.commerce.milestones.service import MilestoneInput
from freelancehub.errors import (
    AlreadyRatedError,
    ConflictError,
    DuplicateApplicationError,
    InvalidTransitionError,
    ValidationError,
)


def race(fn, args_list, workers=None):
    """Run ``fn`` concurrently; return (successes, errors)."""
    barrier = threading.Barrier(len(args_list))
    successes, errors = [], []
    lock = threading.Lock()

    def run(args):
        barrier.wait()
        try:
            result = fn(*args)
        except Exception as e:
            with lock:
                errors.append(e)
        else:
            with lock:
                successes.append(result)

    with concurrent.futures.ThreadPoolExecutor(max_workers=workers or len(args_list)) as executor:
        futures = [executor.submit(run, args) for args in args_list]
        concurrent.futures.wait(futures)
    return successes, errors


class TestConcurrentSelection:
    def test_only_one_selection_wins(self, market, open_job, employer):
        freelancers = [Actor(f"fl-{i}", Role.FREELANCER) for i in range(5)]
        for f in freelancers:
            market.jobs.apply_to_job(open_job.id, f)

        successes, errors = race(
            market.jobs.select_freelancer,
            [(open_job.id, f.user_id, employer) for f in freelancers],
        )

        assert len(successes) == 1, f"Race condition! Multiple selections: {successes}"
        assert len(errors) == 4
        assert all(isinstance(e, ConflictError) for e in errors)

        job = market.jobs.get_job(open_job.id)
        accepted = [a.freelancer_id for a in job.applicants if a.is_accepted]
        assert accepted == [job.freelancer_id]

    def test_select_racing_close(self, market, open_job, employer, freelancer):
        market.jobs.apply_to_job(open_job.id, freelancer)

        successes, errors = race(
            lambda op: op(),
            [
                (lambda: market.jobs.select_freelancer(open_job.id, "fl-1", employer),),
                (lambda: market.jobs.close_job(open_job.id, employer),),
            ],
        )

        assert len(successes) == 1
        assert len(errors) == 1
        assert market.jobs.get_job(open_job.id).status in ("assigned", "closed")


class TestConcurrentApplications:
    def test_many_freelancers_apply(self, market, open_job):
        successes, errors = race(
            market.jobs.apply_to_job,
            [(open_job.id, Actor(f"fl-{i}", Role.FREELANCER)) for i in range(10)],
        )

        assert len(successes) == 10
        assert errors == []
        assert len(market.jobs.get_job(open_job.id).applicants) == 10

    def test_same_freelancer_applies_twice(self, market, open_job, freelancer):
        successes, errors = race(market.jobs.apply_to_job, [(open_job.id, freelancer)] * 2)

        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], DuplicateApplicationError)
        assert len(market.jobs.get_job(open_job.id).applicants) == 1

    def test_selected_while_applying_keeps_acceptance(self, market, open_job, employer, freelancer, monkeypatch):
        real_add = market.jobs.storage.add_applicant

        def add_then_select(applicant):
            added = real_add(applicant)
            market.jobs.select_freelancer(open_job.id, applicant.freelancer_id, employer)
            return added

        monkeypatch.setattr(market.jobs.storage, "add_applicant", add_then_select)

        applicant = market.jobs.apply_to_job(open_job.id, freelancer)

        assert applicant.application_status == "accepted"
        job = market.jobs.get_job(open_job.id)
        assert job.status == "assigned"
        assert job.freelancer_id == "fl-1"
        assert [a.freelancer_id for a in job.applicants if a.is_accepted] == ["fl-1"]

    def test_closed_while_applying_withdraws(self, market, open_job, employer, freelancer, monkeypatch):
        real_add = market.jobs.storage.add_applicant

        def add_then_close(applicant):
            added = real_add(applicant)
            market.jobs.close_job(open_job.id, employer)
            return added

        monkeypatch.setattr(market.jobs.storage, "add_applicant", add_then_close)

        with pytest.raises(InvalidTransitionError):
            market.jobs.apply_to_job(open_job.id, freelancer)

        job = market.jobs.get_job(open_job.id)
        assert job.status == "closed"
        assert job.applicants == []


class TestConcurrentMilestones:
    def test_double_approval_releases_once(self, market, assigned_job, employer, freelancer):
        [milestone] = market.milestones.create_milestones(
            assigned_job.id, [MilestoneInput(title="Part one", percentage=50)], employer
        )
        market.milestones.request_approval(assigned_job.id, milestone.id, freelancer)

        successes, errors = race(
            market.milestones.approve_milestone,
            [(assigned_job.id, milestone.id, employer)] * 2,
        )

        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ConflictError)

        payments = [
            n
            for n in market.notifications.list_notifications(freelancer)
            if n.type == "payment_released"
        ]
        assert len(payments) == 1

    def test_last_two_approvals_interleaved(self, market, assigned_job, employer, freelancer, monkeypatch):
        first, second = market.milestones.create_milestones(
            assigned_job.id,
            [MilestoneInput(title="Half", percentage=50), MilestoneInput(title="Rest", percentage=50)],
            employer,
        )
        for m in (first, second):
            market.milestones.request_approval(assigned_job.id, m.id, freelancer)

        real_update = market.milestones.storage.update_milestone_where
        interleaved = []

        def update_then_approve_other(milestone_id, expected, updates):
            updated = real_update(milestone_id, expected, updates)
            if milestone_id == first.id and not interleaved:
                interleaved.append(market.milestones.approve_milestone(assigned_job.id, second.id, employer))
            return updated

        monkeypatch.setattr(market.milestones.storage, "update_milestone_where", update_then_approve_other)

        result = market.milestones.approve_milestone(assigned_job.id, first.id, employer)

        assert interleaved[0].job_completed
        assert result.job_completed
        assert result.milestone.status == "approved"
        assert market.jobs.get_job(assigned_job.id).status == "completed"
        payments = [
            n
            for n in market.notifications.list_notifications(freelancer)
            if n.type == "payment_released"
        ]
        assert len(payments) == 2

    def test_completion_taken_by_another_request(self, market, assigned_job, employer, freelancer, monkeypatch):
        [milestone] = market.milestones.create_milestones(
            assigned_job.id, [MilestoneInput(title="Everything", percentage=100)], employer
        )
        market.milestones.request_approval(assigned_job.id, milestone.id, freelancer)

        real_complete = market.milestones.jobs.complete_job

        def completed_elsewhere(job_id, actor=None):
            real_complete(job_id, actor)
            return real_complete(job_id, actor)

        monkeypatch.setattr(market.milestones.jobs, "complete_job", completed_elsewhere)

        result = market.milestones.approve_milestone(assigned_job.id, milestone.id, employer)

        assert result.job_completed
        assert result.job.status == "completed"
        assert "payment_released" in [n.type for n in market.notifications.list_notifications(freelancer)]

    def test_competing_batches_stay_within_total(self, market, assigned_job, employer):
        successes, errors = race(
            market.milestones.create_milestones,
            [(assigned_job.id, [MilestoneInput(title=f"Batch {i}", percentage=70)], employer) for i in range(2)],
        )

        assert len(successes) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ValidationError)
        stored = market.milestones.storage.list_milestones(assigned_job.id)
        assert sum(m.percentage for m in stored) == 70

    def test_batch_inserted_after_total_was_read(self, market, assigned_job, employer, monkeypatch):
        real_list = market.milestones.storage.list_milestones
        reads = []

        def list_then_add_batch(job_id):
            milestones = real_list(job_id)
            if not reads:
                reads.append(job_id)
                market.milestones.create_milestones(
                    job_id, [MilestoneInput(title="Design", percentage=70)], employer
                )
            return milestones

        monkeypatch.setattr(market.milestones.storage, "list_milestones", list_then_add_batch)

        with pytest.raises(ValidationError, match="cannot exceed 100%"):
            market.milestones.create_milestones(
                assigned_job.id, [MilestoneInput(title="Build", percentage=70)], employer
            )

        stored = real_list(assigned_job.id)
        assert [(m.title, m.percentage, m.order) for m in stored] == [("Design", 70, 1)]


class TestConcurrentRatings:
    @pytest.mark.parametrize("attempts", [2, 5])
    def test_rating_gate_closes_once(self, market, completed_job, employer, attempts):
        successes, errors = race(
            market.ratings.rate_freelancer,
            [(completed_job.id, employer, 5)] * attempts,
        )

        assert len(successes) == 1
        assert len(errors) == attempts - 1
        assert all(isinstance(e, AlreadyRatedError) for e in errors)
        assert len(market.ratings.list_ratings_for_user("fl-1")) == 1
