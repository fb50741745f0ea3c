"""
Job service.

Business logic for the job lifecycle: posting, applying, selecting a
freelancer, completing and closing. Every status change is a conditional
update on the expected prior status, so a request that loses a race gets
a ConflictError instead of overwriting the winner.
"""

import math
from dataclasses import dataclass
from decimal import InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from freelancehub.actors import Actor, Role
from freelancehub.commerce.jobs.models import (
    STATUS_TIMESTAMP_FIELDS,
    Applicant,
    ApplicationStatus,
    Job,
    JobStateTransition,
    JobStatus,
)
from freelancehub.commerce.jobs.storage import JobStorage
from freelancehub.commerce.jobs.views import (
    ALL_BUCKET,
    ApplicationView,
    application_views,
    filter_applications,
)
from freelancehub.config import MarketplaceConfig
from freelancehub.errors import (
    ApplicantNotFoundError,
    DuplicateApplicationError,
    ForbiddenError,
    InvalidTransitionError,
    JobNotFoundError,
    ValidationError,
)
from freelancehub.logging_config import get_logger, log_transition
from freelancehub.notifications.models import NotificationType
from freelancehub.notifications.service import NotificationService
from freelancehub.utils import new_id, to_decimal, utc_now

if TYPE_CHECKING:
    from freelancehub.commerce.milestones.storage import MilestoneStorage

logger = get_logger("freelancehub.jobs.service")


@dataclass
class JobPage:
    """One page of the public job listing."""

    jobs: List[Job]
    page: int
    pages: int
    total: int


class JobService:
    """Service for job lifecycle operations."""

    def __init__(
        self,
        storage: JobStorage,
        milestone_storage: "MilestoneStorage",
        notifications: NotificationService,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.storage = storage
        self.milestone_storage = milestone_storage
        self.notifications = notifications
        self.config = config or MarketplaceConfig()

    # =========================================================================
    # Posting
    # =========================================================================

    def create_job(
        self,
        actor: Actor,
        title: Optional[str],
        description: Optional[str],
        budget: Any,
        domain_id: Optional[str] = None,
        skills: Optional[List[str]] = None,
    ) -> Job:
        """Post a new job in ``open`` status.

        Raises:
            ForbiddenError: If the caller is not an employer
            ValidationError: If required fields are missing or the budget is
                below the configured minimum
        """
        if not actor.has_role(Role.EMPLOYER):
            raise ForbiddenError("Only employers can post jobs")
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if len(title.strip()) > self.config.max_title_length:
            raise ValidationError(f"Title cannot exceed {self.config.max_title_length} characters")
        if not description or not description.strip():
            raise ValidationError("Description is required")
        if budget is None or budget == "":
            raise ValidationError("Budget is required")
        try:
            amount = to_decimal(budget)
        except (InvalidOperation, ValueError):
            raise ValidationError("Budget must be a number") from None
        if not amount.is_finite() or amount < self.config.min_job_budget:
            raise ValidationError(f"Budget must be at least {self.config.min_job_budget}")

        now = utc_now()
        try:
            job = Job(
                id=new_id(),
                employer_id=actor.user_id,
                title=title.strip(),
                description=description.strip(),
                budget=amount,
                domain_id=domain_id,
                skills=sorted({s.strip() for s in skills or [] if s and s.strip()}),
                created_at=now,
                updated_at=now,
            )
        except ValueError as e:
            raise ValidationError(str(e)) from None

        self.storage.save_job(job)
        self._record_transition(job.id, None, JobStatus.OPEN, actor.user_id)
        logger.info(f"Job created | id={job.id} | employer={actor.user_id} | budget={amount}")
        return job

    # =========================================================================
    # Reads
    # =========================================================================

    def get_job(self, job_id: str) -> Job:
        job = self.storage.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def list_open_jobs(
        self,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
    ) -> JobPage:
        """Public listing of open jobs, newest first."""
        if page < 1:
            raise ValidationError("Page must be at least 1")
        size = self.config.jobs_page_size
        filters = dict(status=JobStatus.OPEN, domain_id=domain_id, search=search or None)
        total = self.storage.count_jobs(**filters)
        jobs = self.storage.list_jobs(**filters, limit=size, offset=size * (page - 1))
        return JobPage(jobs=jobs, page=page, pages=math.ceil(total / size), total=total)

    def get_employer_jobs(self, actor: Actor) -> List[Job]:
        return self.storage.list_jobs(employer_id=actor.user_id, limit=1000)

    def get_freelancer_jobs(self, actor: Actor) -> Dict[str, List[Job]]:
        """Jobs grouped the way the freelancer dashboard shows them."""
        return {
            "applied": self.storage.list_jobs(
                status=JobStatus.OPEN, applicant_id=actor.user_id, limit=1000
            ),
            "assigned": self.storage.list_jobs(
                status=JobStatus.ASSIGNED, freelancer_id=actor.user_id, limit=1000
            ),
            "completed": self.storage.list_jobs(
                status=JobStatus.COMPLETED, freelancer_id=actor.user_id, limit=1000
            ),
        }

    def get_applied_jobs(self, actor: Actor, bucket: str = ALL_BUCKET) -> List[ApplicationView]:
        jobs = self.storage.list_jobs(applicant_id=actor.user_id, limit=1000)
        try:
            return filter_applications(application_views(jobs, actor.user_id), bucket)
        except ValueError as e:
            raise ValidationError(str(e)) from None

    def get_transitions(self, job_id: str, actor: Actor) -> List[JobStateTransition]:
        job = self.get_job(job_id)
        if not (actor.is_admin or job.is_party(actor.user_id)):
            raise ForbiddenError("Not Authorized")
        return self.storage.get_transitions(job_id)

    # =========================================================================
    # Applications
    # =========================================================================

    def apply_to_job(self, job_id: str, actor: Actor) -> Applicant:
        """Add the caller to the job's applicants as ``pending``.

        Raises:
            ForbiddenError: If the caller is not a freelancer or owns the job
            JobNotFoundError: If the job doesn't exist
            InvalidTransitionError: If the job is no longer open
            DuplicateApplicationError: If the caller already applied
        """
        if not actor.has_role(Role.FREELANCER):
            raise ForbiddenError("Only freelancers can apply to jobs")

        job = self.get_job(job_id)
        if job.employer_id == actor.user_id:
            raise ForbiddenError("Cannot apply to your own job")
        if not job.is_open:
            raise InvalidTransitionError("This job is no longer open for applications")
        if job.get_applicant(actor.user_id) is not None:
            raise DuplicateApplicationError("You have already applied for this job")

        applicant = Applicant(job_id=job_id, freelancer_id=actor.user_id)
        if not self.storage.add_applicant(applicant):
            raise DuplicateApplicationError("You have already applied for this job")

        # The job may have been assigned or closed between the read and the insert
        current = self.get_job(job_id)
        if not current.is_open:
            # Only a still-pending row is withdrawn; one already accepted or
            # rejected by the employer stands
            if not self.storage.remove_applicant(job_id, actor.user_id, expected=ApplicationStatus.PENDING):
                kept = self.get_job(job_id).get_applicant(actor.user_id)
                if kept is not None:
                    logger.info(
                        f"Application kept, already {kept.application_status} | job={job_id} | user={actor.user_id}"
                    )
                    return kept
            logger.warning(f"Application withdrawn, job left open state | job={job_id} | status={current.status}")
            raise InvalidTransitionError("This job is no longer open for applications")

        log_transition("application", f"{job_id}/{actor.user_id}", None, ApplicationStatus.PENDING.value, actor.user_id)
        self.notifications.notify_quietly(
            job.employer_id,
            NotificationType.NEW_APPLICATION,
            title="New Application",
            message=f"A freelancer has applied for your job: {job.title}",
            sender_id=actor.user_id,
            job_id=job_id,
            link=f"/jobs/{job_id}/applicants",
        )
        return applicant

    def select_freelancer(self, job_id: str, freelancer_id: str, actor: Actor) -> Job:
        """Accept one applicant and assign the job to them.

        Raises:
            JobNotFoundError: If the job doesn't exist
            ForbiddenError: If the caller is not the job's employer
            InvalidTransitionError: If the job is not open (including losing a
                race against another selection)
            ApplicantNotFoundError: If the freelancer never applied
        """
        job = self.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        if not job.is_open:
            raise InvalidTransitionError("This job is no longer open")
        if job.get_applicant(freelancer_id) is None:
            raise ApplicantNotFoundError("This freelancer has not applied for the job")

        now = utc_now()
        updated = self.storage.update_job_where(
            job_id,
            expected={"status": JobStatus.OPEN.value},
            updates={
                "status": JobStatus.ASSIGNED.value,
                "freelancer_id": freelancer_id,
                STATUS_TIMESTAMP_FIELDS[JobStatus.ASSIGNED]: now,
            },
        )
        if updated is None:
            self._raise_lost_race(job_id, JobStatus.OPEN, "Another freelancer was already selected for this job")

        if not self.storage.update_applicant_status(
            job_id, freelancer_id, ApplicationStatus.PENDING, ApplicationStatus.ACCEPTED
        ):
            logger.warning(f"Applicant {freelancer_id} on job {job_id} was not pending at selection")

        self._record_transition(job_id, JobStatus.OPEN, JobStatus.ASSIGNED, actor.user_id)
        log_transition("application", f"{job_id}/{freelancer_id}", "pending", "accepted", actor.user_id)

        self.notifications.notify_quietly(
            freelancer_id,
            NotificationType.JOB_ASSIGNED,
            title="You've Been Selected",
            message=f"You have been selected for the job: {job.title}",
            sender_id=actor.user_id,
            job_id=job_id,
        )

        if self.config.reject_other_applicants_on_select:
            self._reject_other_applicants(job, freelancer_id, actor.user_id)

        logger.info(f"Freelancer selected | job={job_id} | freelancer={freelancer_id}")
        return self.get_job(job_id)

    def _reject_other_applicants(self, job: Job, selected_id: str, actor_id: str) -> None:
        # Best effort: the job is already assigned, a failure here only leaves
        # an applicant pending.
        for applicant in job.applicants:
            if applicant.freelancer_id == selected_id or not applicant.is_pending:
                continue
            try:
                changed = self.storage.update_applicant_status(
                    job.id, applicant.freelancer_id, ApplicationStatus.PENDING, ApplicationStatus.REJECTED
                )
            except Exception as e:
                logger.warning(f"Failed to reject applicant {applicant.freelancer_id}: {e}")
                continue
            if not changed:
                continue
            log_transition("application", f"{job.id}/{applicant.freelancer_id}", "pending", "rejected", actor_id)
            self.notifications.notify_quietly(
                applicant.freelancer_id,
                NotificationType.APPLICATION_REJECTED,
                title="Application Update",
                message=f"Another freelancer was selected for: {job.title}",
                sender_id=actor_id,
                job_id=job.id,
            )

    # =========================================================================
    # Completion / closing
    # =========================================================================

    def complete_job(self, job_id: str, actor: Optional[Actor] = None) -> Job:
        """Mark an assigned job completed.

        Called by the milestone service (``actor`` None) once the last
        milestone is approved, or by the employer directly.

        Raises:
            JobNotFoundError: If the job doesn't exist
            ForbiddenError: If a caller other than the employer completes it
            InvalidTransitionError: If the job is not assigned or has
                milestones that are not approved
        """
        job = self.get_job(job_id)
        if actor is not None and job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        if not job.can_transition_to(JobStatus.COMPLETED):
            raise InvalidTransitionError(f"Cannot complete job in status: {job.status}")

        outstanding = [m for m in self.milestone_storage.list_milestones(job_id) if not m.is_approved]
        if outstanding:
            raise InvalidTransitionError(
                f"Cannot complete job: {len(outstanding)} milestone(s) not yet approved"
            )

        updated = self.storage.update_job_where(
            job_id,
            expected={"status": JobStatus.ASSIGNED.value},
            updates={
                "status": JobStatus.COMPLETED.value,
                STATUS_TIMESTAMP_FIELDS[JobStatus.COMPLETED]: utc_now(),
            },
        )
        if updated is None:
            self._raise_lost_race(job_id, JobStatus.ASSIGNED, "Job status was modified by another request")

        actor_id = actor.user_id if actor else None
        self._record_transition(job_id, JobStatus.ASSIGNED, JobStatus.COMPLETED, actor_id)
        for recipient in (updated.employer_id, updated.freelancer_id):
            self.notifications.notify_quietly(
                recipient,
                NotificationType.JOB_COMPLETED,
                title="Job Completed",
                message=f"The job has been completed: {updated.title}",
                sender_id=actor_id,
                job_id=job_id,
            )

        logger.info(f"Job completed | id={job_id} | by={actor_id or 'milestones'}")
        return updated

    def close_job(self, job_id: str, actor: Actor) -> Job:
        """Withdraw an open posting.

        Raises:
            JobNotFoundError: If the job doesn't exist
            ForbiddenError: If the caller is not the job's employer
            InvalidTransitionError: If the job has left ``open``
        """
        job = self.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        if not job.can_transition_to(JobStatus.CLOSED):
            raise InvalidTransitionError(f"Cannot close job in status: {job.status}")

        updated = self.storage.update_job_where(
            job_id,
            expected={"status": JobStatus.OPEN.value},
            updates={
                "status": JobStatus.CLOSED.value,
                STATUS_TIMESTAMP_FIELDS[JobStatus.CLOSED]: utc_now(),
            },
        )
        if updated is None:
            self._raise_lost_race(job_id, JobStatus.OPEN, "Job status was modified by another request")

        self._record_transition(job_id, JobStatus.OPEN, JobStatus.CLOSED, actor.user_id)
        for applicant in updated.applicants:
            if applicant.is_pending:
                self.notifications.notify_quietly(
                    applicant.freelancer_id,
                    NotificationType.JOB_CLOSED,
                    title="Job Closed",
                    message=f"The employer closed the job: {job.title}",
                    sender_id=actor.user_id,
                    job_id=job_id,
                )

        logger.info(f"Job closed | id={job_id} | employer={actor.user_id}")
        return updated

    # =========================================================================
    # Internals
    # =========================================================================

    def _raise_lost_race(self, job_id: str, expected: JobStatus, message: str) -> None:
        current = self.storage.get_job(job_id)
        if current is None:
            raise JobNotFoundError(job_id)
        logger.warning(
            f"Race condition detected on job {job_id}: "
            f"expected status '{expected.value}', found '{current.status}'"
        )
        raise InvalidTransitionError(message)

    def _record_transition(
        self,
        job_id: str,
        from_status: Optional[JobStatus],
        to_status: JobStatus,
        actor_id: Optional[str],
        reason: Optional[str] = None,
    ) -> None:
        transition = JobStateTransition(
            job_id=job_id,
            from_status=from_status.value if from_status else None,
            to_status=to_status.value,
            actor_id=actor_id,
            reason=reason,
        )
        self.storage.save_transition(transition)
        log_transition("job", job_id, transition.from_status, transition.to_status, actor_id)
