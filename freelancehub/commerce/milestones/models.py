"""
Milestone data models.

A milestone is a payment checkpoint inside an assigned job. Its amount is
a percentage of the job budget held in escrow and released on approval.

Milestone lifecycle:
    pending -> approval_requested -> approved
                        |
                        v
                    rejected -> approval_requested (resubmission)

Only pending milestones may be deleted; approved milestones never change.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Optional, Union

from freelancehub.utils import iso, new_id, parse_datetime, to_decimal, utc_now


class MilestoneStatus(str, Enum):
    """Status of a milestone."""

    PENDING = "pending"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVED = "approved"
    REJECTED = "rejected"


VALID_MILESTONE_TRANSITIONS: Dict[MilestoneStatus, set] = {
    MilestoneStatus.PENDING: {MilestoneStatus.APPROVAL_REQUESTED},
    MilestoneStatus.APPROVAL_REQUESTED: {MilestoneStatus.APPROVED, MilestoneStatus.REJECTED},
    MilestoneStatus.REJECTED: {MilestoneStatus.APPROVAL_REQUESTED},
    MilestoneStatus.APPROVED: set(),
}

STATUS_TIMESTAMP_FIELDS: Dict[MilestoneStatus, Optional[str]] = {
    MilestoneStatus.PENDING: None,
    MilestoneStatus.APPROVAL_REQUESTED: "approval_requested_at",
    MilestoneStatus.APPROVED: "approved_at",
    MilestoneStatus.REJECTED: "rejected_at",
}

CENT = Decimal("0.01")


def milestone_amount(budget: Decimal, percentage: int) -> Decimal:
    """Share of ``budget`` covered by ``percentage``, rounded to cents."""
    return (to_decimal(budget) * percentage / 100).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class Milestone:
    """A payment checkpoint within a job."""

    job_id: str
    title: str
    percentage: int
    amount: Decimal
    order: int
    id: str = field(default_factory=new_id)
    description: str = ""
    due_date: Optional[datetime] = None
    status: str = MilestoneStatus.PENDING.value
    feedback: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    approval_requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    def __post_init__(self):
        raw = self.status.value if isinstance(self.status, Enum) else self.status
        try:
            self.status = MilestoneStatus(raw).value
        except ValueError:
            raise ValueError(f"Invalid status: {raw}") from None
        if not self.title or not self.title.strip():
            raise ValueError("Milestone title cannot be empty")
        if isinstance(self.percentage, bool) or not isinstance(self.percentage, int):
            raise ValueError("Percentage must be a whole number")
        if not 1 <= self.percentage <= 100:
            raise ValueError("Percentage must be between 1 and 100")
        self.amount = to_decimal(self.amount)
        if self.order < 1:
            raise ValueError("Order must start at 1")

    @property
    def status_enum(self) -> MilestoneStatus:
        return MilestoneStatus(self.status)

    @property
    def is_approved(self) -> bool:
        return self.status == MilestoneStatus.APPROVED.value

    def can_transition_to(self, new_status: Union[MilestoneStatus, str]) -> bool:
        target = MilestoneStatus(new_status.value if isinstance(new_status, Enum) else new_status)
        return target in VALID_MILESTONE_TRANSITIONS[self.status_enum]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "title": self.title,
            "description": self.description,
            "percentage": self.percentage,
            "amount": float(self.amount),
            "order": self.order,
            "due_date": iso(self.due_date),
            "status": self.status,
            "feedback": self.feedback,
            "rejection_reason": self.rejection_reason,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
            "approval_requested_at": iso(self.approval_requested_at),
            "approved_at": iso(self.approved_at),
            "rejected_at": iso(self.rejected_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            title=data["title"],
            description=data.get("description") or "",
            percentage=int(data["percentage"]),
            amount=to_decimal(data["amount"]),
            order=int(data["order"]),
            due_date=parse_datetime(data.get("due_date")),
            status=data.get("status", MilestoneStatus.PENDING.value),
            feedback=data.get("feedback"),
            rejection_reason=data.get("rejection_reason"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
            updated_at=parse_datetime(data.get("updated_at")) or utc_now(),
            approval_requested_at=parse_datetime(data.get("approval_requested_at")),
            approved_at=parse_datetime(data.get("approved_at")),
            rejected_at=parse_datetime(data.get("rejected_at")),
        )


@dataclass
class EscrowSummary:
    """Escrow position of a job derived from its milestones."""

    job_id: str
    budget: Decimal
    released: Decimal
    progress_percentage: int
    milestone_count: int
    approved_count: int

    @property
    def held(self) -> Decimal:
        return self.budget - self.released

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "budget": float(self.budget),
            "released": float(self.released),
            "held": float(self.held),
            "progress_percentage": self.progress_percentage,
            "milestone_count": self.milestone_count,
            "approved_count": self.approved_count,
        }
