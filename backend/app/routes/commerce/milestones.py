"""Milestone routes.

Endpoints for the payment checkpoints of an assigned job and the escrow
position derived from them.
"""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Request, status
from pydantic import BaseModel, Field, StrictInt

from freelancehub.commerce.milestones.models import Milestone
from freelancehub.commerce.milestones.service import MilestoneInput

from ...auth import CurrentUser
from ...database import MarketplaceDep
from ...logging_config import get_logger
from ...rate_limit import limiter
from .jobs import JobResponse, to_job_response

logger = get_logger("freelancehub.api.milestones")
router = APIRouter(prefix="/jobs/{job_id}", tags=["milestones"])


# =============================================================================
# Request/Response Models
# =============================================================================

MilestoneStatus = Literal["pending", "approval_requested", "approved", "rejected"]


class MilestoneItem(BaseModel):
    title: str = Field(..., min_length=1)
    description: str = ""
    percentage: StrictInt
    due_date: datetime | None = None


class MilestonesCreate(BaseModel):
    """Request to add milestones to an assigned job."""

    milestones: list[MilestoneItem] = Field(..., min_length=1)


class MilestoneUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    due_date: datetime | None = None


class ApproveRequest(BaseModel):
    feedback: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class MilestoneResponse(BaseModel):
    id: str
    job_id: str
    title: str
    description: str
    percentage: int
    amount: float
    order: int
    due_date: datetime | None = None
    status: MilestoneStatus
    feedback: str | None = None
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime
    approval_requested_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None


class ApprovalResponse(BaseModel):
    milestone: MilestoneResponse
    payment_amount: float
    job_completed: bool
    job: JobResponse


class EscrowResponse(BaseModel):
    job_id: str
    budget: float
    released: float
    held: float
    progress_percentage: int
    milestone_count: int
    approved_count: int


def to_milestone_response(milestone: Milestone) -> MilestoneResponse:
    return MilestoneResponse(**milestone.to_dict())


# =============================================================================
# Routes
# =============================================================================


@router.post("/milestones", response_model=list[MilestoneResponse], status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_milestones(
    request: Request,
    job_id: str,
    body: MilestonesCreate,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """
    Add milestones to an assigned job.

    Amounts are computed from the job budget; percentages across all of a
    job's milestones cannot exceed 100.
    """
    logger.info(f"POST /jobs/{job_id}/milestones | user={auth.user_id} | count={len(body.milestones)}")
    items = [
        MilestoneInput(
            title=m.title,
            description=m.description,
            percentage=m.percentage,
            due_date=m.due_date,
        )
        for m in body.milestones
    ]
    created = market.milestones.create_milestones(job_id, items, auth.actor)
    return [to_milestone_response(m) for m in created]


@router.get("/milestones", response_model=list[MilestoneResponse])
@limiter.limit("60/minute")
async def list_milestones(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Milestones of a job in order. Job parties only."""
    logger.info(f"GET /jobs/{job_id}/milestones | user={auth.user_id}")
    return [to_milestone_response(m) for m in market.milestones.list_milestones(job_id, auth.actor)]


@router.get("/milestones/{milestone_id}", response_model=MilestoneResponse)
@limiter.limit("60/minute")
async def get_milestone(
    request: Request,
    job_id: str,
    milestone_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    logger.info(f"GET /jobs/{job_id}/milestones/{milestone_id} | user={auth.user_id}")
    return to_milestone_response(market.milestones.get_milestone(job_id, milestone_id, auth.actor))


@router.put("/milestones/{milestone_id}", response_model=MilestoneResponse)
@limiter.limit("20/minute")
async def update_milestone(
    request: Request,
    job_id: str,
    milestone_id: str,
    body: MilestoneUpdate,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Edit a milestone's title, description or due date until it is approved."""
    logger.info(f"PUT /jobs/{job_id}/milestones/{milestone_id} | user={auth.user_id}")
    milestone = market.milestones.update_milestone(
        job_id,
        milestone_id,
        auth.actor,
        title=body.title,
        description=body.description,
        due_date=body.due_date,
    )
    return to_milestone_response(milestone)


@router.delete("/milestones/{milestone_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("20/minute")
async def delete_milestone(
    request: Request,
    job_id: str,
    milestone_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Delete a pending milestone."""
    logger.info(f"DELETE /jobs/{job_id}/milestones/{milestone_id} | user={auth.user_id}")
    market.milestones.delete_milestone(job_id, milestone_id, auth.actor)


@router.post("/milestones/{milestone_id}/request-approval", response_model=MilestoneResponse)
@limiter.limit("20/minute")
async def request_approval(
    request: Request,
    job_id: str,
    milestone_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Freelancer submits a milestone for the employer's review."""
    logger.info(f"POST /jobs/{job_id}/milestones/{milestone_id}/request-approval | user={auth.user_id}")
    return to_milestone_response(market.milestones.request_approval(job_id, milestone_id, auth.actor))


@router.post("/milestones/{milestone_id}/approve", response_model=ApprovalResponse)
@limiter.limit("10/minute")
async def approve_milestone(
    request: Request,
    job_id: str,
    milestone_id: str,
    body: ApproveRequest,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """
    Approve a milestone and release its amount.

    Approving the last outstanding milestone completes the job.
    """
    logger.info(f"POST /jobs/{job_id}/milestones/{milestone_id}/approve | user={auth.user_id}")
    result = market.milestones.approve_milestone(job_id, milestone_id, auth.actor, feedback=body.feedback)
    return ApprovalResponse(
        milestone=to_milestone_response(result.milestone),
        payment_amount=float(result.payment_amount),
        job_completed=result.job_completed,
        job=to_job_response(result.job),
    )


@router.post("/milestones/{milestone_id}/reject", response_model=MilestoneResponse)
@limiter.limit("10/minute")
async def reject_milestone(
    request: Request,
    job_id: str,
    milestone_id: str,
    body: RejectRequest,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Send a milestone back to the freelancer with a reason."""
    logger.info(f"POST /jobs/{job_id}/milestones/{milestone_id}/reject | user={auth.user_id}")
    milestone = market.milestones.reject_milestone(job_id, milestone_id, auth.actor, reason=body.reason)
    return to_milestone_response(milestone)


@router.get("/escrow", response_model=EscrowResponse)
@limiter.limit("60/minute")
async def get_escrow(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Released and held amounts for a job."""
    logger.info(f"GET /jobs/{job_id}/escrow | user={auth.user_id}")
    return EscrowResponse(**market.milestones.escrow_summary(job_id, auth.actor).to_dict())
