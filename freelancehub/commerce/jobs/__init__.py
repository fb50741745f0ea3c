"""Jobs subsystem.

Models:
- Job: A work posting
- Applicant: A freelancer's application, embedded in the job
- JobStatus: Job lifecycle status
- ApplicationStatus: Application lifecycle status
- JobStateTransition: Audit log entry for state changes

Service:
- JobService: Job operations (create, apply, select, complete, close)
"""

from freelancehub.commerce.jobs.models import (
    VALID_JOB_TRANSITIONS,
    Applicant,
    ApplicationStatus,
    Job,
    JobStateTransition,
    JobStatus,
)
from freelancehub.commerce.jobs.service import JobPage, JobService
from freelancehub.commerce.jobs.storage import InMemoryJobStorage, JobStorage
from freelancehub.commerce.jobs.views import (
    APPLICATION_BUCKETS,
    ApplicationView,
    application_bucket,
    filter_applications,
    has_applied,
)

__all__ = [
    # Models
    "Job",
    "Applicant",
    "JobStatus",
    "ApplicationStatus",
    "JobStateTransition",
    "VALID_JOB_TRANSITIONS",
    # Views
    "ApplicationView",
    "APPLICATION_BUCKETS",
    "application_bucket",
    "filter_applications",
    "has_applied",
    # Service
    "JobService",
    "JobPage",
    "JobStorage",
    "InMemoryJobStorage",
]
