"""Jobs routes.

Endpoints for posting jobs, applying, selecting a freelancer, completing,
closing and rating.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Query, Request, status
from pydantic import BaseModel, Field, StrictInt

from freelancehub.commerce.jobs.models import Job, JobStateTransition
from freelancehub.commerce.jobs.views import ApplicationView
from freelancehub.commerce.ratings.models import Rating

from ...auth import CurrentUser, EmployerUser, FreelancerUser
from ...database import MarketplaceDep
from ...logging_config import get_logger
from ...rate_limit import limiter

logger = get_logger("freelancehub.api.jobs")
router = APIRouter(prefix="/jobs", tags=["jobs"])


# =============================================================================
# Request/Response Models
# =============================================================================

JobStatus = Literal["open", "assigned", "completed", "closed"]
ApplicationStatus = Literal["pending", "accepted", "rejected"]
ApplicationFilter = Literal["all", "pending", "accepted", "rejected", "completed"]


class JobCreate(BaseModel):
    """Request to post a job.

    Presence and range checks happen in the job service so API and core
    report the same messages.
    """

    title: str | None = None
    description: str | None = None
    budget: Decimal | None = None
    domain_id: str | None = None
    skills: list[str] = Field(default_factory=list)


class RatingCreate(BaseModel):
    """Request to rate the other party of a completed job."""

    rating: StrictInt | None = None
    review: str | None = None


class ApplicantResponse(BaseModel):
    freelancer_id: str
    applied_at: datetime
    application_status: ApplicationStatus


class JobResponse(BaseModel):
    """Job details response."""

    id: str
    employer_id: str
    freelancer_id: str | None = None
    title: str
    description: str
    budget: float
    domain_id: str | None = None
    skills: list[str]
    status: JobStatus
    applicants: list[ApplicantResponse] = Field(default_factory=list)
    is_rated_by_employer: bool
    is_rated_by_freelancer: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None
    assigned_at: datetime | None = None
    completed_at: datetime | None = None
    closed_at: datetime | None = None


class JobListResponse(BaseModel):
    """One page of open jobs."""

    jobs: list[JobResponse]
    page: int
    pages: int
    total: int


class FreelancerJobsResponse(BaseModel):
    applied: list[JobResponse]
    assigned: list[JobResponse]
    completed: list[JobResponse]


class ApplicationResponse(BaseModel):
    """A freelancer's application with its display bucket."""

    job: JobResponse
    application_status: ApplicationStatus
    applied_at: datetime
    bucket: ApplicationFilter


class TransitionResponse(BaseModel):
    id: str
    job_id: str
    from_status: JobStatus | None = None
    to_status: JobStatus
    actor_id: str | None = None
    reason: str | None = None
    created_at: datetime


class RatingResponse(BaseModel):
    id: str
    job_id: str
    from_id: str
    to_id: str
    direction: str
    rating: int
    review: str | None = None
    created_at: datetime


class MessageResponse(BaseModel):
    message: str


# =============================================================================
# Helper Functions
# =============================================================================


def to_job_response(job: Job) -> JobResponse:
    return JobResponse(**job.to_dict())


def to_application_response(view: ApplicationView) -> ApplicationResponse:
    return ApplicationResponse(
        job=to_job_response(view.job),
        application_status=view.application_status,
        applied_at=view.applied_at,
        bucket=view.bucket,
    )


def to_transition_response(transition: JobStateTransition) -> TransitionResponse:
    return TransitionResponse(**transition.to_dict())


def to_rating_response(rating: Rating) -> RatingResponse:
    return RatingResponse(**rating.to_dict())


# =============================================================================
# Routes
# =============================================================================


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("20/minute")
async def create_job(
    request: Request,
    body: JobCreate,
    auth: EmployerUser,
    market: MarketplaceDep,
):
    """
    Post a new job.

    The authenticated employer becomes the job owner. Jobs start in 'open'
    status and accept applications until a freelancer is selected.
    """
    logger.info(f"POST /jobs | employer={auth.user_id} | title={(body.title or '')[:50]}")
    job = market.jobs.create_job(
        auth.actor,
        title=body.title,
        description=body.description,
        budget=body.budget,
        domain_id=body.domain_id,
        skills=body.skills,
    )
    return to_job_response(job)


@router.get("", response_model=JobListResponse)
@limiter.limit("60/minute")
async def list_jobs(
    request: Request,
    market: MarketplaceDep,
    domain: str | None = Query(None, description="Only jobs in this domain"),
    search: str | None = Query(None, description="Case-insensitive match on title or description"),
    page: int = Query(1, ge=1),
):
    """List open jobs, newest first, ten per page."""
    logger.info(f"GET /jobs | domain={domain} | search={search} | page={page}")
    result = market.jobs.list_open_jobs(domain_id=domain, search=search, page=page)
    return JobListResponse(
        jobs=[to_job_response(j) for j in result.jobs],
        page=result.page,
        pages=result.pages,
        total=result.total,
    )


@router.get("/applied", response_model=list[ApplicationResponse])
@limiter.limit("60/minute")
async def get_applied_jobs(
    request: Request,
    auth: FreelancerUser,
    market: MarketplaceDep,
    filter: ApplicationFilter = Query("all"),
):
    """
    Applications made by the caller.

    Completed jobs only show under the 'completed' filter, whatever the
    application status.
    """
    logger.info(f"GET /jobs/applied | user={auth.user_id} | filter={filter}")
    views = market.jobs.get_applied_jobs(auth.actor, bucket=filter)
    return [to_application_response(v) for v in views]


@router.get("/employer", response_model=list[JobResponse])
@limiter.limit("60/minute")
async def get_employer_jobs(
    request: Request,
    auth: EmployerUser,
    market: MarketplaceDep,
):
    """Jobs posted by the caller."""
    logger.info(f"GET /jobs/employer | user={auth.user_id}")
    return [to_job_response(j) for j in market.jobs.get_employer_jobs(auth.actor)]


@router.get("/freelancer", response_model=FreelancerJobsResponse)
@limiter.limit("60/minute")
async def get_freelancer_jobs(
    request: Request,
    auth: FreelancerUser,
    market: MarketplaceDep,
):
    """The caller's jobs grouped into applied, assigned and completed."""
    logger.info(f"GET /jobs/freelancer | user={auth.user_id}")
    grouped = market.jobs.get_freelancer_jobs(auth.actor)
    return FreelancerJobsResponse(
        **{bucket: [to_job_response(j) for j in jobs] for bucket, jobs in grouped.items()}
    )


@router.get("/{job_id}", response_model=JobResponse)
@limiter.limit("60/minute")
async def get_job(
    request: Request,
    job_id: str,
    market: MarketplaceDep,
):
    """Get details of a specific job."""
    logger.info(f"GET /jobs/{job_id}")
    return to_job_response(market.jobs.get_job(job_id))


@router.post("/{job_id}/apply", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def apply_to_job(
    request: Request,
    job_id: str,
    auth: FreelancerUser,
    market: MarketplaceDep,
):
    """
    Apply to an open job.

    Each freelancer can apply once; employers cannot apply to their own jobs.
    """
    logger.info(f"POST /jobs/{job_id}/apply | user={auth.user_id}")
    market.jobs.apply_to_job(job_id, auth.actor)
    return MessageResponse(message="Application submitted successfully")


@router.put("/{job_id}/select/{freelancer_id}", response_model=JobResponse)
@limiter.limit("10/minute")
async def select_freelancer(
    request: Request,
    job_id: str,
    freelancer_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """
    Select an applicant for the job.

    Only the job's employer can select. The job moves to 'assigned'; other
    pending applicants are rejected when that policy is enabled.
    """
    logger.info(f"PUT /jobs/{job_id}/select/{freelancer_id} | user={auth.user_id}")
    job = market.jobs.select_freelancer(job_id, freelancer_id, auth.actor)
    return to_job_response(job)


@router.post("/{job_id}/complete", response_model=JobResponse)
@limiter.limit("10/minute")
async def complete_job(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Mark an assigned job completed. Every milestone must be approved."""
    logger.info(f"POST /jobs/{job_id}/complete | user={auth.user_id}")
    return to_job_response(market.jobs.complete_job(job_id, auth.actor))


@router.post("/{job_id}/close", response_model=JobResponse)
@limiter.limit("10/minute")
async def close_job(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Withdraw an open job posting."""
    logger.info(f"POST /jobs/{job_id}/close | user={auth.user_id}")
    return to_job_response(market.jobs.close_job(job_id, auth.actor))


@router.post("/{job_id}/rate", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def rate_freelancer(
    request: Request,
    job_id: str,
    body: RatingCreate,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Employer rates the freelancer once the job is completed."""
    logger.info(f"POST /jobs/{job_id}/rate | user={auth.user_id}")
    rating = market.ratings.rate_freelancer(job_id, auth.actor, body.rating, body.review)
    return to_rating_response(rating)


@router.post("/{job_id}/rate-employer", response_model=RatingResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("10/minute")
async def rate_employer(
    request: Request,
    job_id: str,
    body: RatingCreate,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Freelancer rates the employer once the job is completed."""
    logger.info(f"POST /jobs/{job_id}/rate-employer | user={auth.user_id}")
    rating = market.ratings.rate_employer(job_id, auth.actor, body.rating, body.review)
    return to_rating_response(rating)


@router.get("/{job_id}/transitions", response_model=list[TransitionResponse])
@limiter.limit("60/minute")
async def get_job_transitions(
    request: Request,
    job_id: str,
    auth: CurrentUser,
    market: MarketplaceDep,
):
    """Status history of a job, oldest first. Parties and admins only."""
    logger.info(f"GET /jobs/{job_id}/transitions | user={auth.user_id}")
    return [to_transition_response(t) for t in market.jobs.get_transitions(job_id, auth.actor)]
