"""
Derived application state.

Applications have no storage of their own: they are read off
``Job.applicants``. These helpers compute everything the clients display
about an application so every consumer sees the same answer.

Categorization rule: once a job is completed it is reported in the
``completed`` bucket no matter what the applicant's status is, and it is
left out of every other bucket including ``all``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Optional

from freelancehub.commerce.jobs.models import Applicant, ApplicationStatus, Job

COMPLETED_BUCKET = "completed"
ALL_BUCKET = "all"
APPLICATION_BUCKETS = (
    ALL_BUCKET,
    ApplicationStatus.PENDING.value,
    ApplicationStatus.ACCEPTED.value,
    ApplicationStatus.REJECTED.value,
    COMPLETED_BUCKET,
)


@dataclass
class ApplicationView:
    """One freelancer's application as seen from their dashboard."""

    job: Job
    freelancer_id: str
    application_status: str
    applied_at: datetime

    @property
    def bucket(self) -> str:
        return application_bucket(self.job, self.freelancer_id)


def has_applied(job: Job, user_id: Optional[str]) -> bool:
    if not user_id:
        return False
    return job.get_applicant(user_id) is not None


def accepted_applicant(job: Job) -> Optional[Applicant]:
    for applicant in job.applicants:
        if applicant.is_accepted:
            return applicant
    return None


def application_bucket(job: Job, freelancer_id: str) -> str:
    """Bucket a freelancer's application falls into.

    Raises:
        ValueError: If the freelancer never applied to the job
    """
    applicant = job.get_applicant(freelancer_id)
    if applicant is None:
        raise ValueError(f"{freelancer_id} has not applied to job {job.id}")
    if job.is_completed:
        return COMPLETED_BUCKET
    return applicant.application_status


def application_views(jobs: Iterable[Job], freelancer_id: str) -> List[ApplicationView]:
    """Build views for every job the freelancer applied to, newest application first."""
    views = []
    for job in jobs:
        applicant = job.get_applicant(freelancer_id)
        if applicant is None:
            continue
        views.append(
            ApplicationView(
                job=job,
                freelancer_id=freelancer_id,
                application_status=applicant.application_status,
                applied_at=applicant.applied_at,
            )
        )
    views.sort(key=lambda v: v.applied_at, reverse=True)
    return views


def filter_applications(views: Iterable[ApplicationView], bucket: str = ALL_BUCKET) -> List[ApplicationView]:
    """Select the views shown under ``bucket``.

    Raises:
        ValueError: If ``bucket`` is not one of APPLICATION_BUCKETS
    """
    if bucket not in APPLICATION_BUCKETS:
        raise ValueError(f"Unknown application filter: {bucket}")

    selected = []
    for view in views:
        if bucket == COMPLETED_BUCKET:
            if not view.job.is_completed:
                continue
        else:
            if view.job.is_completed:
                continue
            if bucket != ALL_BUCKET and view.application_status != bucket:
                continue
        selected.append(view)
    return selected
