"""
Milestone service.

Drives the per-milestone state machine and the escrow bookkeeping derived
from it. Transitions are conditional updates keyed on the milestone id
plus the status the caller saw, so a double approval from two tabs
cannot release the same payment twice.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional

from freelancehub.actors import Actor
from freelancehub.commerce.jobs.models import Job
from freelancehub.commerce.milestones.models import (
    STATUS_TIMESTAMP_FIELDS,
    EscrowSummary,
    Milestone,
    MilestoneStatus,
    milestone_amount,
)
from freelancehub.commerce.milestones.storage import MilestoneStorage
from freelancehub.config import MarketplaceConfig
from freelancehub.errors import (
    ForbiddenError,
    InvalidTransitionError,
    MilestoneNotFoundError,
    ValidationError,
)
from freelancehub.logging_config import get_logger, log_transition
from freelancehub.notifications.models import NotificationType
from freelancehub.notifications.service import NotificationService
from freelancehub.utils import parse_datetime, utc_now

if TYPE_CHECKING:
    from freelancehub.commerce.jobs.service import JobService

logger = get_logger("freelancehub.milestones.service")


@dataclass
class MilestoneInput:
    """Fields supplied when creating a milestone."""

    title: str
    percentage: int
    description: str = ""
    due_date: Optional[datetime] = None


@dataclass
class ApprovalResult:
    """Outcome of approving a milestone."""

    milestone: Milestone
    payment_amount: Decimal
    job_completed: bool
    job: Job


class MilestoneService:
    """Service for milestone operations."""

    def __init__(
        self,
        storage: MilestoneStorage,
        jobs: "JobService",
        notifications: NotificationService,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.storage = storage
        self.jobs = jobs
        self.notifications = notifications
        self.config = config or MarketplaceConfig()

    # =========================================================================
    # Creation and edits
    # =========================================================================

    def create_milestones(
        self,
        job_id: str,
        items: Iterable[MilestoneInput],
        actor: Actor,
    ) -> List[Milestone]:
        """Add milestones to an assigned job, appended after existing ones.

        Raises:
            JobNotFoundError: If the job doesn't exist
            ForbiddenError: If the caller is not the job's employer
            InvalidTransitionError: If the job is not assigned
            ValidationError: If an item is malformed or the percentages would
                exceed 100 in total
        """
        job = self.jobs.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        if not job.is_assigned:
            raise InvalidTransitionError("Job must be assigned before creating milestones")

        items = list(items)
        if not items:
            raise ValidationError("At least one milestone is required")

        added = sum(self._percentage(i) for i in items)
        existing = sum(m.percentage for m in self.storage.list_milestones(job_id))
        if self.config.enforce_milestone_total and existing + added > 100:
            raise ValidationError(f"Total milestone percentage cannot exceed 100% (got {existing + added}%)")

        created = []
        for position, item in enumerate(items, start=1):
            title = self._title(item.title or "")
            try:
                created.append(
                    Milestone(
                        job_id=job_id,
                        title=title,
                        description=(item.description or "").strip(),
                        percentage=item.percentage,
                        amount=milestone_amount(job.budget, self._percentage(item)),
                        order=position,
                        due_date=parse_datetime(item.due_date),
                    )
                )
            except ValueError as e:
                raise ValidationError(str(e)) from None

        max_total = 100 if self.config.enforce_milestone_total else None
        saved = self.storage.append_milestones(job_id, created, max_total=max_total)
        if saved is None:
            current = sum(m.percentage for m in self.storage.list_milestones(job_id))
            logger.warning(f"Race condition detected on milestones of job {job_id} | total={current}%")
            raise ValidationError(f"Total milestone percentage cannot exceed 100% (got {current + added}%)")
        logger.info(f"Milestones created | job={job_id} | count={len(saved)} | total={existing + added}%")

        self.notifications.notify_quietly(
            job.freelancer_id,
            NotificationType.MILESTONES_CREATED,
            title="Project Milestones Created",
            message=f"Milestones have been created for your project: {job.title}",
            sender_id=actor.user_id,
            job_id=job_id,
            link=f"/jobs/{job_id}/milestones",
            metadata={"total_milestones": len(saved), "first_milestone": saved[0].title},
        )
        return saved

    def _title(self, title: str) -> str:
        title = title.strip()
        if len(title) > self.config.max_title_length:
            raise ValidationError(f"Milestone title cannot exceed {self.config.max_title_length} characters")
        return title

    @staticmethod
    def _percentage(item: MilestoneInput) -> int:
        if isinstance(item.percentage, bool) or not isinstance(item.percentage, int):
            raise ValidationError("Percentage must be a whole number")
        if not 1 <= item.percentage <= 100:
            raise ValidationError("Percentage must be between 1 and 100")
        return item.percentage

    def update_milestone(
        self,
        job_id: str,
        milestone_id: str,
        actor: Actor,
        title: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Any = None,
    ) -> Milestone:
        """Edit the descriptive fields of a milestone that is not approved."""
        job = self.jobs.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        milestone = self._get_for_job(job_id, milestone_id)
        if milestone.is_approved:
            raise InvalidTransitionError("Cannot update approved milestones")

        updates: Dict[str, Any] = {}
        if title is not None:
            if not title.strip():
                raise ValidationError("Milestone title cannot be empty")
            updates["title"] = self._title(title)
        if description is not None:
            updates["description"] = description.strip()
        if due_date is not None:
            updates["due_date"] = parse_datetime(due_date)
        if not updates:
            return milestone

        updated = self.storage.update_milestone_where(
            milestone_id, expected={"status": milestone.status}, updates=updates
        )
        if updated is None:
            self._raise_lost_race(milestone_id, milestone.status)
        return updated

    def delete_milestone(self, job_id: str, milestone_id: str, actor: Actor) -> None:
        """Remove a pending milestone and renumber the rest.

        Either party to the job may delete.
        """
        job = self.jobs.get_job(job_id)
        self._require_party(job, actor)
        milestone = self._get_for_job(job_id, milestone_id)
        if milestone.status != MilestoneStatus.PENDING.value:
            raise InvalidTransitionError("Can only delete pending milestones")

        if not self.storage.delete_milestone_where(milestone_id, MilestoneStatus.PENDING):
            self._raise_lost_race(milestone_id, milestone.status)

        for order, remaining in enumerate(self.storage.list_milestones(job_id), start=1):
            if remaining.order != order:
                self.storage.update_milestone_where(remaining.id, expected={}, updates={"order": order})

        log_transition("milestone", milestone_id, milestone.status, "removed", actor.user_id)

    # =========================================================================
    # Reads
    # =========================================================================

    def list_milestones(self, job_id: str, actor: Actor) -> List[Milestone]:
        job = self.jobs.get_job(job_id)
        self._require_party(job, actor, allow_admin=True)
        return self.storage.list_milestones(job_id)

    def get_milestone(self, job_id: str, milestone_id: str, actor: Actor) -> Milestone:
        job = self.jobs.get_job(job_id)
        self._require_party(job, actor, allow_admin=True)
        return self._get_for_job(job_id, milestone_id)

    def escrow_summary(self, job_id: str, actor: Actor) -> EscrowSummary:
        """Released vs held amounts for a job, derived from approved milestones."""
        job = self.jobs.get_job(job_id)
        self._require_party(job, actor, allow_admin=True)
        milestones = self.storage.list_milestones(job_id)
        approved = [m for m in milestones if m.is_approved]
        return EscrowSummary(
            job_id=job_id,
            budget=job.budget,
            released=sum((m.amount for m in approved), Decimal("0")),
            progress_percentage=sum(m.percentage for m in approved),
            milestone_count=len(milestones),
            approved_count=len(approved),
        )

    # =========================================================================
    # State machine
    # =========================================================================

    def request_approval(self, job_id: str, milestone_id: str, actor: Actor) -> Milestone:
        """Freelancer submits a pending or rejected milestone for review."""
        job = self.jobs.get_job(job_id)
        if job.freelancer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        milestone = self._get_for_job(job_id, milestone_id)

        updated = self._transition(milestone, MilestoneStatus.APPROVAL_REQUESTED, actor)

        self.notifications.notify_quietly(
            job.employer_id,
            NotificationType.MILESTONE_APPROVAL_REQUESTED,
            title="Milestone Approval Requested",
            message=f"Approval has been requested for milestone: {milestone.title}",
            sender_id=actor.user_id,
            job_id=job_id,
            link=f"/jobs/{job_id}/milestones/{milestone_id}",
            metadata={"milestone_percentage": milestone.percentage, "milestone_amount": float(milestone.amount)},
        )
        return updated

    def approve_milestone(
        self,
        job_id: str,
        milestone_id: str,
        actor: Actor,
        feedback: Optional[str] = None,
    ) -> ApprovalResult:
        """Employer approves a milestone under review, releasing its amount.

        Approving the last outstanding milestone completes the job.
        """
        job = self.jobs.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        milestone = self._get_for_job(job_id, milestone_id)

        updated = self._transition(
            milestone,
            MilestoneStatus.APPROVED,
            actor,
            feedback=feedback.strip() if feedback else None,
        )

        job = self._complete_if_all_approved(job_id)

        self.notifications.notify_quietly(
            job.freelancer_id,
            NotificationType.MILESTONE_APPROVED,
            title="Final Milestone Approved!" if job.is_completed else "Milestone Approved",
            message=f'Milestone "{milestone.title}" has been approved.',
            sender_id=actor.user_id,
            job_id=job_id,
            metadata={"feedback": updated.feedback, "is_job_completed": job.is_completed},
        )
        self.notifications.notify_quietly(
            job.freelancer_id,
            NotificationType.PAYMENT_RELEASED,
            title="Payment Released",
            message=f"Payment of ${updated.amount:.2f} has been released for: {milestone.title}",
            sender_id=actor.user_id,
            job_id=job_id,
            link="/transactions",
            metadata={"amount": float(updated.amount), "percentage": updated.percentage},
        )

        logger.info(f"Milestone approved | job={job_id} | milestone={milestone_id} | amount={updated.amount}")
        return ApprovalResult(
            milestone=updated,
            payment_amount=updated.amount,
            job_completed=job.is_completed,
            job=job,
        )

    def reject_milestone(
        self,
        job_id: str,
        milestone_id: str,
        actor: Actor,
        reason: Optional[str],
    ) -> Milestone:
        """Employer sends a milestone under review back with a reason."""
        if not reason or not reason.strip():
            raise ValidationError("A rejection reason is required")
        job = self.jobs.get_job(job_id)
        if job.employer_id != actor.user_id:
            raise ForbiddenError("Not Authorized")
        milestone = self._get_for_job(job_id, milestone_id)

        updated = self._transition(
            milestone, MilestoneStatus.REJECTED, actor, rejection_reason=reason.strip()
        )

        self.notifications.notify_quietly(
            job.freelancer_id,
            NotificationType.MILESTONE_REJECTED,
            title="Milestone Needs Revision",
            message=f'Milestone "{milestone.title}" requires revision. Please review the feedback and resubmit.',
            sender_id=actor.user_id,
            job_id=job_id,
            link=f"/jobs/{job_id}/milestones/{milestone_id}",
            metadata={"rejection_reason": updated.rejection_reason},
        )
        return updated

    # =========================================================================
    # Internals
    # =========================================================================

    def _transition(
        self,
        milestone: Milestone,
        new_status: MilestoneStatus,
        actor: Actor,
        **updates: Any,
    ) -> Milestone:
        if not milestone.can_transition_to(new_status):
            raise InvalidTransitionError(
                f"Cannot move milestone from {milestone.status} to {new_status.value}"
            )

        fields = {"status": new_status.value, **updates}
        stamp = STATUS_TIMESTAMP_FIELDS[new_status]
        if stamp:
            fields[stamp] = utc_now()

        updated = self.storage.update_milestone_where(
            milestone.id, expected={"status": milestone.status}, updates=fields
        )
        if updated is None:
            self._raise_lost_race(milestone.id, milestone.status)

        log_transition("milestone", milestone.id, milestone.status, new_status.value, actor.user_id)
        return updated

    def _complete_if_all_approved(self, job_id: str) -> Job:
        """Complete the job once none of its milestones is outstanding.

        Runs after the approval has committed, so it never raises for a job
        that a concurrent approval completed first.
        """
        milestones = self.storage.list_milestones(job_id)
        job = self.jobs.get_job(job_id)
        if not job.is_assigned or not all(m.is_approved for m in milestones):
            return job
        try:
            return self.jobs.complete_job(job_id)
        except InvalidTransitionError as e:
            job = self.jobs.get_job(job_id)
            logger.info(f"Auto-completion skipped | job={job_id} | status={job.status} | reason={e.message}")
            return job

    def _get_for_job(self, job_id: str, milestone_id: str) -> Milestone:
        milestone = self.storage.get_milestone(milestone_id)
        if milestone is None or milestone.job_id != job_id:
            raise MilestoneNotFoundError(milestone_id)
        return milestone

    @staticmethod
    def _require_party(job: Job, actor: Actor, allow_admin: bool = False) -> None:
        if allow_admin and actor.is_admin:
            return
        if not job.is_party(actor.user_id):
            raise ForbiddenError("Not Authorized")

    def _raise_lost_race(self, milestone_id: str, expected: str) -> None:
        current = self.storage.get_milestone(milestone_id)
        if current is None:
            raise MilestoneNotFoundError(milestone_id)
        logger.warning(
            f"Race condition detected on milestone {milestone_id}: "
            f"expected status '{expected}', found '{current.status}'"
        )
        raise InvalidTransitionError("Milestone was modified by another request. Please refresh and try again.")
