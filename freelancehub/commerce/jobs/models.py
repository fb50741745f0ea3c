"""
Job data models.

Jobs are postings created by employers. Freelancers apply; the employer
selects one applicant, which assigns the job. Work is paid out through
milestones and the job completes once every milestone is approved.

Job lifecycle:
    open -> assigned -> completed
    open -> closed (employer withdraws the posting)
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from freelancehub.utils import iso, new_id, parse_datetime, to_decimal, utc_now


class JobStatus(str, Enum):
    """Status of a job posting."""

    OPEN = "open"  # Accepting applications
    ASSIGNED = "assigned"  # Freelancer selected, work in progress
    COMPLETED = "completed"  # All milestones approved
    CLOSED = "closed"  # Withdrawn by the employer before assignment


class ApplicationStatus(str, Enum):
    """Status of a single applicant on a job."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


VALID_JOB_TRANSITIONS: Dict[JobStatus, set] = {
    JobStatus.OPEN: {JobStatus.ASSIGNED, JobStatus.CLOSED},
    JobStatus.ASSIGNED: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),
    JobStatus.CLOSED: set(),
}

# Timestamp column stamped when a job enters the status
STATUS_TIMESTAMP_FIELDS: Dict[JobStatus, Optional[str]] = {
    JobStatus.OPEN: None,
    JobStatus.ASSIGNED: "assigned_at",
    JobStatus.COMPLETED: "completed_at",
    JobStatus.CLOSED: "closed_at",
}


def _coerce_status(value: Union[str, Enum], enum_cls) -> str:
    raw = value.value if isinstance(value, Enum) else value
    try:
        return enum_cls(raw).value
    except ValueError:
        raise ValueError(f"Invalid status: {raw}") from None


@dataclass
class Applicant:
    """A freelancer's application to a job."""

    job_id: str
    freelancer_id: str
    applied_at: datetime = field(default_factory=utc_now)
    application_status: str = ApplicationStatus.PENDING.value

    def __post_init__(self):
        self.application_status = _coerce_status(self.application_status, ApplicationStatus)
        if not self.freelancer_id:
            raise ValueError("freelancer_id is required")

    @property
    def is_pending(self) -> bool:
        return self.application_status == ApplicationStatus.PENDING.value

    @property
    def is_accepted(self) -> bool:
        return self.application_status == ApplicationStatus.ACCEPTED.value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "freelancer_id": self.freelancer_id,
            "applied_at": iso(self.applied_at),
            "application_status": self.application_status,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Applicant":
        return cls(
            job_id=data["job_id"],
            freelancer_id=data["freelancer_id"],
            applied_at=parse_datetime(data.get("applied_at")) or utc_now(),
            application_status=data.get("application_status", ApplicationStatus.PENDING.value),
        )


@dataclass
class Job:
    """A job posting in the marketplace.

    ``applicants`` is ordered by ``applied_at``. ``freelancer_id`` is set
    once an applicant is selected. The ``is_rated_by_*`` flags are the
    one-shot rating gates checked by the rating service.
    """

    id: str
    employer_id: str
    title: str
    description: str
    budget: Decimal
    domain_id: Optional[str] = None
    skills: List[str] = field(default_factory=list)
    status: str = JobStatus.OPEN.value
    freelancer_id: Optional[str] = None
    applicants: List[Applicant] = field(default_factory=list)
    is_rated_by_employer: bool = False
    is_rated_by_freelancer: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    assigned_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = _coerce_status(self.status, JobStatus)
        self.budget = to_decimal(self.budget)
        if self.budget <= 0:
            raise ValueError("Budget must be positive")
        if not self.title or not self.title.strip():
            raise ValueError("Title cannot be empty")
        if not self.description or not self.description.strip():
            raise ValueError("Description cannot be empty")

    @property
    def status_enum(self) -> JobStatus:
        return JobStatus(self.status)

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.OPEN.value

    @property
    def is_assigned(self) -> bool:
        return self.status == JobStatus.ASSIGNED.value

    @property
    def is_completed(self) -> bool:
        return self.status == JobStatus.COMPLETED.value

    @property
    def is_terminal(self) -> bool:
        return not VALID_JOB_TRANSITIONS[self.status_enum]

    def can_transition_to(self, new_status: Union[JobStatus, str]) -> bool:
        target = JobStatus(new_status.value if isinstance(new_status, Enum) else new_status)
        return target in VALID_JOB_TRANSITIONS[self.status_enum]

    def is_party(self, user_id: str) -> bool:
        """True for the employer and the selected freelancer."""
        return user_id in (self.employer_id, self.freelancer_id)

    def get_applicant(self, freelancer_id: str) -> Optional[Applicant]:
        for applicant in self.applicants:
            if applicant.freelancer_id == freelancer_id:
                return applicant
        return None

    def to_dict(self, include_applicants: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "employer_id": self.employer_id,
            "title": self.title,
            "description": self.description,
            "budget": float(self.budget),
            "domain_id": self.domain_id,
            "skills": list(self.skills),
            "status": self.status,
            "freelancer_id": self.freelancer_id,
            "is_rated_by_employer": self.is_rated_by_employer,
            "is_rated_by_freelancer": self.is_rated_by_freelancer,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "assigned_at": iso(self.assigned_at),
            "completed_at": iso(self.completed_at),
            "closed_at": iso(self.closed_at),
        }
        if include_applicants:
            data["applicants"] = [a.to_dict() for a in self.applicants]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Job":
        return cls(
            id=data["id"],
            employer_id=data["employer_id"],
            title=data["title"],
            description=data["description"],
            budget=to_decimal(data["budget"]),
            domain_id=data.get("domain_id"),
            skills=list(data.get("skills") or []),
            status=data.get("status", JobStatus.OPEN.value),
            freelancer_id=data.get("freelancer_id"),
            applicants=[Applicant.from_dict(a) for a in data.get("applicants") or []],
            is_rated_by_employer=bool(data.get("is_rated_by_employer", False)),
            is_rated_by_freelancer=bool(data.get("is_rated_by_freelancer", False)),
            created_at=parse_datetime(data.get("created_at")),
            updated_at=parse_datetime(data.get("updated_at")),
            assigned_at=parse_datetime(data.get("assigned_at")),
            completed_at=parse_datetime(data.get("completed_at")),
            closed_at=parse_datetime(data.get("closed_at")),
        )


@dataclass
class JobStateTransition:
    """Audit log entry for a job status change."""

    job_id: str
    to_status: str
    id: str = field(default_factory=new_id)
    from_status: Optional[str] = None  # None for creation
    actor_id: Optional[str] = None  # None for system-triggered transitions
    reason: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.to_status = _coerce_status(self.to_status, JobStatus)
        if self.from_status is not None:
            self.from_status = _coerce_status(self.from_status, JobStatus)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "actor_id": self.actor_id,
            "reason": self.reason,
            "created_at": iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobStateTransition":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            from_status=data.get("from_status"),
            to_status=data["to_status"],
            actor_id=data.get("actor_id"),
            reason=data.get("reason"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )
