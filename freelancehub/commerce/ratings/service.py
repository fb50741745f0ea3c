"""
Rating service.

Each completed job can be rated once in each direction. The gate is the
job's ``is_rated_by_*`` flag, flipped with a conditional update so two
concurrent submissions cannot both pass.
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from freelancehub.actors import Actor
from freelancehub.commerce.jobs.models import JobStatus
from freelancehub.commerce.jobs.service import JobService
from freelancehub.commerce.ratings.models import MAX_RATING, MIN_RATING, Rating, RatingDirection
from freelancehub.commerce.ratings.storage import RatingStorage
from freelancehub.config import MarketplaceConfig
from freelancehub.errors import (
    AlreadyRatedError,
    ForbiddenError,
    InvalidTransitionError,
    ValidationError,
)
from freelancehub.logging_config import get_logger
from freelancehub.notifications.models import NotificationType
from freelancehub.notifications.service import NotificationService

logger = get_logger("freelancehub.ratings.service")


@dataclass
class RatingSummary:
    """Aggregate of the ratings a user has received."""

    user_id: str
    average: Optional[float]
    count: int


class RatingService:
    """Service for post-completion ratings."""

    def __init__(
        self,
        storage: RatingStorage,
        jobs: JobService,
        notifications: NotificationService,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.storage = storage
        self.jobs = jobs
        self.notifications = notifications
        self.config = config or MarketplaceConfig()

    def rate_freelancer(
        self,
        job_id: str,
        actor: Actor,
        rating: Any,
        review: Optional[str] = None,
    ) -> Rating:
        """Employer rates the freelancer of a completed job.

        Raises:
            ValidationError: If the rating or review is malformed
            JobNotFoundError: If the job doesn't exist
            ForbiddenError: If the caller is not the job's employer
            InvalidTransitionError: If the job is not completed
            AlreadyRatedError: If the employer already rated this job
        """
        return self._rate(job_id, actor, rating, review, RatingDirection.EMPLOYER_TO_FREELANCER)

    def rate_employer(
        self,
        job_id: str,
        actor: Actor,
        rating: Any,
        review: Optional[str] = None,
    ) -> Rating:
        """Assigned freelancer rates the employer of a completed job."""
        return self._rate(job_id, actor, rating, review, RatingDirection.FREELANCER_TO_EMPLOYER)

    def list_ratings_for_user(self, user_id: str, limit: int = 50) -> List[Rating]:
        return self.storage.list_ratings(user_id, limit=limit)

    def average_rating(self, user_id: str) -> RatingSummary:
        ratings = self.storage.list_ratings(user_id, limit=10_000)
        if not ratings:
            return RatingSummary(user_id=user_id, average=None, count=0)
        average = sum(r.rating for r in ratings) / len(ratings)
        return RatingSummary(user_id=user_id, average=round(average, 2), count=len(ratings))

    # =========================================================================
    # Internals
    # =========================================================================

    def _rate(
        self,
        job_id: str,
        actor: Actor,
        rating: Any,
        review: Optional[str],
        direction: RatingDirection,
    ) -> Rating:
        score, review = self._validate_input(rating, review)

        job = self.jobs.get_job(job_id)
        if direction is RatingDirection.EMPLOYER_TO_FREELANCER:
            rater_id, ratee_id = job.employer_id, job.freelancer_id
        else:
            rater_id, ratee_id = job.freelancer_id, job.employer_id
        if not rater_id or actor.user_id != rater_id:
            raise ForbiddenError("Not Authorized")
        if not job.is_completed:
            raise InvalidTransitionError("Job Not Completed")
        gate = direction.gate_field
        if getattr(job, gate):
            raise AlreadyRatedError()

        closed = self.jobs.storage.update_job_where(
            job_id,
            expected={"status": JobStatus.COMPLETED.value, gate: False},
            updates={gate: True},
        )
        if closed is None:
            logger.warning(f"Rating gate already closed | job={job_id} | direction={direction.value}")
            raise AlreadyRatedError()

        record = Rating(
            job_id=job_id,
            from_id=rater_id,
            to_id=ratee_id,
            direction=direction,
            rating=score,
            review=review,
        )
        try:
            self.storage.save_rating(record)
        except Exception:
            # Reopen the gate so the rater can retry
            self.jobs.storage.update_job_where(job_id, expected={gate: True}, updates={gate: False})
            logger.error(f"Failed to store rating | job={job_id} | direction={direction.value}", exc_info=True)
            raise

        logger.info(f"Rating stored | job={job_id} | direction={direction.value} | rating={score}")
        self.notifications.notify_quietly(
            ratee_id,
            NotificationType.NEW_RATING,
            title="New Rating Received",
            message=f"You received a {score}-star rating for: {job.title}",
            sender_id=rater_id,
            job_id=job_id,
            metadata={"rating": score, "direction": direction.value},
        )
        return record

    def _validate_input(self, rating: Any, review: Optional[str]):
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise ValidationError(f"Rating must be a whole number between {MIN_RATING} and {MAX_RATING}")
        if not MIN_RATING <= rating <= MAX_RATING:
            raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
        if review is not None:
            review = review.strip()
            if len(review) > self.config.max_review_length:
                raise ValidationError(
                    f"Review cannot exceed {self.config.max_review_length} characters"
                )
        return rating, review or None
