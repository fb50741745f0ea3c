"""Milestones subsystem.

Models:
- Milestone: A payment checkpoint within an assigned job
- MilestoneStatus: Milestone lifecycle status
- EscrowSummary: Released vs held budget for a job

Service:
- MilestoneService: create, edit, request approval, approve, reject
"""

from freelancehub.commerce.milestones.models import (
    VALID_MILESTONE_TRANSITIONS,
    EscrowSummary,
    Milestone,
    MilestoneStatus,
    milestone_amount,
)
from freelancehub.commerce.milestones.service import (
    ApprovalResult,
    MilestoneInput,
    MilestoneService,
)
from freelancehub.commerce.milestones.storage import InMemoryMilestoneStorage, MilestoneStorage

__all__ = [
    "Milestone",
    "MilestoneStatus",
    "EscrowSummary",
    "VALID_MILESTONE_TRANSITIONS",
    "milestone_amount",
    "MilestoneService",
    "MilestoneInput",
    "ApprovalResult",
    "MilestoneStorage",
    "InMemoryMilestoneStorage",
]
