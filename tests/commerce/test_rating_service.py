"""Tests for rating service."""

import pytest

from freelancehub import Actor, Role
from freelancehub.commerce.ratings.models import Rating, RatingDirection
from freelancehub.errors import (
    AlreadyRatedError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from freelancehub.notifications.models import NotificationType


class TestRatingModel:
    def test_direction_gate_fields(self):
        assert RatingDirection.EMPLOYER_TO_FREELANCER.gate_field == "is_rated_by_employer"
        assert RatingDirection.FREELANCER_TO_EMPLOYER.gate_field == "is_rated_by_freelancer"

    def test_rating_range(self):
        with pytest.raises(ValueError, match="between 1 and 5"):
            Rating(job_id="j", from_id="a", to_id="b", direction="employer_to_freelancer", rating=6)

    def test_invalid_direction(self):
        with pytest.raises(ValueError, match="Invalid direction"):
            Rating(job_id="j", from_id="a", to_id="b", direction="sideways", rating=3)


class TestRateFreelancer:
    """Tests for the employer -> freelancer rating gate."""

    def test_rate_success(self, market, completed_job, employer, freelancer):
        rating = market.ratings.rate_freelancer(completed_job.id, employer, 5, "  Great work ")

        assert rating.rating == 5
        assert rating.review == "Great work"
        assert rating.from_id == "emp-1"
        assert rating.to_id == "fl-1"
        assert rating.direction == "employer_to_freelancer"
        assert [r.id for r in market.ratings.list_ratings_for_user("fl-1")] == [rating.id]

        job = market.jobs.get_job(completed_job.id)
        assert job.is_rated_by_employer is True
        assert job.is_rated_by_freelancer is False

        assert NotificationType.NEW_RATING in [
            n.type for n in market.notifications.list_notifications(freelancer)
        ]

    def test_second_rating_rejected(self, market, completed_job, employer):
        market.ratings.rate_freelancer(completed_job.id, employer, 4)

        with pytest.raises(AlreadyRatedError, match="Already Rated"):
            market.ratings.rate_freelancer(completed_job.id, employer, 1, "changed my mind")

        assert [r.rating for r in market.ratings.list_ratings_for_user("fl-1")] == [4]

    def test_already_rated_is_conflict(self):
        assert issubclass(AlreadyRatedError, ConflictError)

    def test_job_not_found(self, market, employer):
        with pytest.raises(JobNotFoundError):
            market.ratings.rate_freelancer("missing", employer, 5)

    def test_non_employer_forbidden(self, market, completed_job, freelancer):
        with pytest.raises(ForbiddenError, match="Not Authorized"):
            market.ratings.rate_freelancer(completed_job.id, freelancer, 5)

    def test_job_not_completed(self, market, assigned_job, employer):
        with pytest.raises(InvalidTransitionError, match="Job Not Completed"):
            market.ratings.rate_freelancer(assigned_job.id, employer, 5)

    def test_forbidden_checked_before_completion(self, market, assigned_job):
        with pytest.raises(ForbiddenError):
            market.ratings.rate_freelancer(assigned_job.id, Actor("emp-2", Role.EMPLOYER), 5)

    @pytest.mark.parametrize("value", [0, 6, 3.5, "5", None, True])
    def test_invalid_rating_value(self, market, completed_job, employer, value):
        with pytest.raises(ValidationError):
            market.ratings.rate_freelancer(completed_job.id, employer, value)

    def test_input_validated_before_lookup(self, market, employer):
        with pytest.raises(ValidationError):
            market.ratings.rate_freelancer("missing", employer, 9)

    def test_review_too_long(self, market, completed_job, employer):
        with pytest.raises(ValidationError, match="1000"):
            market.ratings.rate_freelancer(completed_job.id, employer, 5, "x" * 1001)

    def test_review_at_limit(self, market, completed_job, employer):
        rating = market.ratings.rate_freelancer(completed_job.id, employer, 5, "x" * 1000)
        assert len(rating.review) == 1000

    def test_failed_save_reopens_gate(self, market, completed_job, employer, monkeypatch):
        def boom(rating):
            raise RuntimeError("insert failed")

        monkeypatch.setattr(market.ratings.storage, "save_rating", boom)
        with pytest.raises(RuntimeError):
            market.ratings.rate_freelancer(completed_job.id, employer, 5)

        assert market.jobs.get_job(completed_job.id).is_rated_by_employer is False
        assert market.ratings.list_ratings_for_user("fl-1") == []


class TestRateEmployer:
    """Tests for the freelancer -> employer direction."""

    def test_rate_employer(self, market, completed_job, freelancer, employer):
        rating = market.ratings.rate_employer(completed_job.id, freelancer, 4)

        assert rating.to_id == "emp-1"
        assert market.jobs.get_job(completed_job.id).is_rated_by_freelancer is True
        assert NotificationType.NEW_RATING in [
            n.type for n in market.notifications.list_notifications(employer)
        ]

    def test_directions_are_independent(self, market, completed_job, freelancer, employer):
        market.ratings.rate_freelancer(completed_job.id, employer, 5)
        market.ratings.rate_employer(completed_job.id, freelancer, 3)

        with pytest.raises(AlreadyRatedError):
            market.ratings.rate_employer(completed_job.id, freelancer, 3)

    def test_only_assigned_freelancer(self, market, completed_job, freelancer2):
        with pytest.raises(ForbiddenError):
            market.ratings.rate_employer(completed_job.id, freelancer2, 3)


class TestRatingAggregates:
    def test_average(self, market, completed_job, employer):
        market.ratings.rate_freelancer(completed_job.id, employer, 4)

        summary = market.ratings.average_rating("fl-1")
        assert summary.average == 4.0
        assert summary.count == 1

    def test_average_without_ratings(self, market):
        summary = market.ratings.average_rating("nobody")
        assert summary.average is None
        assert summary.count == 0
