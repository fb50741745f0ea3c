"""
Jobs storage layer.

Defines the persistence protocol for jobs, their applicants and the
transition audit log, plus an in-memory backend. The Supabase backend
lives with the API in ``app.database``.

Every state change goes through a conditional update: the write only
lands if the row still matches ``expected``. That is what keeps two
concurrent selections (or a selection racing a close) from both winning.
"""

import copy
import threading
from typing import Any, Dict, List, Optional, Protocol

from freelancehub.commerce.jobs.models import (
    Applicant,
    ApplicationStatus,
    Job,
    JobStateTransition,
    JobStatus,
)
from freelancehub.logging_config import get_logger
from freelancehub.utils import utc_now

logger = get_logger("freelancehub.jobs.storage")


class JobStorage(Protocol):
    """Protocol for job persistence backends."""

    # Jobs
    def save_job(self, job: Job) -> str:
        """Insert a new job. Returns the job ID."""
        ...

    def get_job(self, job_id: str) -> Optional[Job]:
        """Get a job by ID with its applicants loaded."""
        ...

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        """List jobs, newest first, with optional filters."""
        ...

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        """Count jobs matching the same filters as list_jobs."""
        ...

    def update_job_where(
        self,
        job_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Job]:
        """Apply ``updates`` only if every ``expected`` field still matches.

        Returns the updated job, or None if the job is missing or the
        precondition no longer holds.
        """
        ...

    # Applicants
    def add_applicant(self, applicant: Applicant) -> bool:
        """Append an applicant. Returns False if (job, freelancer) exists."""
        ...

    def remove_applicant(self, job_id: str, freelancer_id: str, expected: ApplicationStatus) -> bool:
        """Remove an applicant row only while it is still in ``expected`` status."""
        ...

    def update_applicant_status(
        self,
        job_id: str,
        freelancer_id: str,
        expected: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> bool:
        """Conditionally change an applicant's status."""
        ...

    # Transitions (audit log)
    def save_transition(self, transition: JobStateTransition) -> str:
        """Save a state transition record. Returns the transition ID."""
        ...

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        """Get all state transitions for a job, oldest first."""
        ...


def _value(v: Any) -> Any:
    return v.value if hasattr(v, "value") else v


class InMemoryJobStorage:
    """In-memory job storage for testing and local development.

    A single lock serializes writes so the conditional updates behave
    like their database counterparts under threads. Reads hand out copies.
    """

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._transitions: dict[str, list[JobStateTransition]] = {}  # job_id -> list
        self._lock = threading.RLock()

    # === Jobs ===

    def save_job(self, job: Job) -> str:
        with self._lock:
            self._jobs[job.id] = copy.deepcopy(job)
            self._transitions.setdefault(job.id, [])
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return copy.deepcopy(job) if job else None

    def _filter(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Job]:
        jobs = list(self._jobs.values())
        if status is not None:
            status_val = _value(status)
            jobs = [j for j in jobs if j.status == status_val]
        if employer_id is not None:
            jobs = [j for j in jobs if j.employer_id == employer_id]
        if freelancer_id is not None:
            jobs = [j for j in jobs if j.freelancer_id == freelancer_id]
        if applicant_id is not None:
            jobs = [j for j in jobs if j.get_applicant(applicant_id) is not None]
        if domain_id is not None:
            jobs = [j for j in jobs if j.domain_id == domain_id]
        if search:
            needle = search.lower()
            jobs = [
                j for j in jobs if needle in j.title.lower() or needle in j.description.lower()
            ]
        # Sort by created_at desc
        jobs.sort(key=lambda j: j.created_at or utc_now(), reverse=True)
        return jobs

    def list_jobs(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Job]:
        with self._lock:
            jobs = self._filter(status, employer_id, freelancer_id, applicant_id, domain_id, search)
            return copy.deepcopy(jobs[offset : offset + limit])

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        with self._lock:
            return len(self._filter(status, employer_id, freelancer_id, applicant_id, domain_id, search))

    def update_job_where(
        self,
        job_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            for key, want in expected.items():
                if getattr(job, key) != _value(want):
                    return None
            for key, value in updates.items():
                setattr(job, key, _value(value))
            job.updated_at = utc_now()
            return copy.deepcopy(job)

    # === Applicants ===

    def add_applicant(self, applicant: Applicant) -> bool:
        with self._lock:
            job = self._jobs.get(applicant.job_id)
            if job is None:
                return False
            if job.get_applicant(applicant.freelancer_id) is not None:
                return False
            job.applicants.append(copy.deepcopy(applicant))
            return True

    def remove_applicant(self, job_id: str, freelancer_id: str, expected: ApplicationStatus) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            applicant = job.get_applicant(freelancer_id) if job else None
            if applicant is None or applicant.application_status != _value(expected):
                return False
            job.applicants.remove(applicant)
            return True

    def update_applicant_status(
        self,
        job_id: str,
        freelancer_id: str,
        expected: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> bool:
        with self._lock:
            job = self._jobs.get(job_id)
            applicant = job.get_applicant(freelancer_id) if job else None
            if applicant is None or applicant.application_status != _value(expected):
                return False
            applicant.application_status = _value(new_status)
            return True

    # === Transitions ===

    def save_transition(self, transition: JobStateTransition) -> str:
        with self._lock:
            self._transitions.setdefault(transition.job_id, []).append(transition)
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        with self._lock:
            transitions = list(self._transitions.get(job_id, []))
        # Sort by created_at asc
        return sorted(transitions, key=lambda t: t.created_at)
