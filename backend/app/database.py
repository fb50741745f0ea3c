"""Database utilities for Supabase integration.

Implements the core storage protocols on top of PostgREST. Conditional
updates chain ``.eq()`` filters for every expected field, so an UPDATE
only matches the row if nobody changed it since it was read.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional

from fastapi import Depends

from freelancehub.commerce.jobs.models import (
    Applicant,
    ApplicationStatus,
    Job,
    JobStateTransition,
    JobStatus,
)
from freelancehub.commerce.milestones.models import Milestone, MilestoneStatus
from freelancehub.commerce.ratings.models import Rating
from freelancehub.marketplace import Marketplace
from freelancehub.notifications.models import Notification
from supabase import Client, create_client

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("freelancehub.api.database")

_supabase_client: Client | None = None
_memory_marketplace: Marketplace | None = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url:
            raise ValueError("SUPABASE_URL must be set when STORAGE_BACKEND=supabase")
        # Prefer new secret key, fall back to legacy service_role_key
        api_key = settings.supabase_secret_key or settings.supabase_service_role_key
        if not api_key:
            raise ValueError("Either SUPABASE_SECRET_KEY or SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_client = create_client(settings.supabase_url, api_key)
    return _supabase_client


# =============================================================================
# Table Names
# =============================================================================

JOBS_TABLE = "jobs"
JOB_APPLICANTS_TABLE = "job_applicants"
JOB_TRANSITIONS_TABLE = "job_state_transitions"
MILESTONES_TABLE = "milestones"
RATINGS_TABLE = "ratings"
NOTIFICATIONS_TABLE = "notifications"


def _db_value(value: Any) -> Any:
    """Convert a Python value to its JSON column representation."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _db_row(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: _db_value(v) for k, v in data.items()}


def _match(query, expected: Dict[str, Any]):
    for key, value in expected.items():
        value = _db_value(value)
        query = query.is_(key, "null") if value is None else query.eq(key, value)
    return query


# =============================================================================
# Jobs
# =============================================================================


class SupabaseJobStorage:
    """Job storage backed by the ``jobs`` and ``job_applicants`` tables."""

    def __init__(self, db: Client):
        self.db = db

    def _load_applicants(self, rows: List[dict]) -> List[Job]:
        if not rows:
            return []
        ids = [r["id"] for r in rows]
        result = (
            self.db.table(JOB_APPLICANTS_TABLE)
            .select("*")
            .in_("job_id", ids)
            .order("applied_at")
            .execute()
        )
        by_job: Dict[str, list] = {}
        for a in result.data or []:
            by_job.setdefault(a["job_id"], []).append(a)
        return [Job.from_dict({**r, "applicants": by_job.get(r["id"], [])}) for r in rows]

    def save_job(self, job: Job) -> str:
        self.db.table(JOBS_TABLE).insert(job.to_dict(include_applicants=False)).execute()
        return job.id

    def get_job(self, job_id: str) -> Optional[Job]:
        result = self.db.table(JOBS_TABLE).select("*").eq("id", job_id).execute()
        jobs = self._load_applicants(result.data or [])
        return jobs[0] if jobs else None

    def _applied_job_ids(self, freelancer_id: str) -> List[str]:
        result = (
            self.db.table(JOB_APPLICANTS_TABLE)
            .select("job_id")
            .eq("freelancer_id", freelancer_id)
            .execute()
        )
        return [r["job_id"] for r in result.data or []]

    def _query(self, query, status, employer_id, freelancer_id, applicant_id, domain_id, search):
        if status:
            query = query.eq("status", _db_value(status))
        if employer_id:
            query = query.eq("employer_id", employer_id)
        if freelancer_id:
            query = query.eq("freelancer_id", freelancer_id)
        if domain_id:
            query = query.eq("domain_id", domain_id)
        if applicant_id:
            query = query.in_("id", self._applied_job_ids(applicant_id) or [""])
        if search:
            # PostgREST or-filter syntax; commas and parens would break it
            term = "".join(c for c in search if c not in ",()")
            query = query.or_(f"title.ilike.%{term}%,description.ilike.%{term}%")
        return query

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
        query = self._query(
            self.db.table(JOBS_TABLE).select("*"),
            status, employer_id, freelancer_id, applicant_id, domain_id, search,
        )
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return self._load_applicants(result.data or [])

    def count_jobs(
        self,
        status: Optional[JobStatus] = None,
        employer_id: Optional[str] = None,
        freelancer_id: Optional[str] = None,
        applicant_id: Optional[str] = None,
        domain_id: Optional[str] = None,
        search: Optional[str] = None,
    ) -> int:
        query = self._query(
            self.db.table(JOBS_TABLE).select("id", count="exact"),
            status, employer_id, freelancer_id, applicant_id, domain_id, search,
        )
        return query.limit(1).execute().count or 0

    def update_job_where(
        self,
        job_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Job]:
        query = self.db.table(JOBS_TABLE).update(_db_row(updates)).eq("id", job_id)
        result = _match(query, expected).execute()
        if not result.data:
            return None
        return self._load_applicants(result.data)[0]

    def add_applicant(self, applicant: Applicant) -> bool:
        # Unique (job_id, freelancer_id) in the schema; ignore_duplicates
        # returns no row when the pair already exists
        result = (
            self.db.table(JOB_APPLICANTS_TABLE)
            .upsert(applicant.to_dict(), on_conflict="job_id,freelancer_id", ignore_duplicates=True)
            .execute()
        )
        return bool(result.data)

    def remove_applicant(self, job_id: str, freelancer_id: str, expected: ApplicationStatus) -> bool:
        result = (
            self.db.table(JOB_APPLICANTS_TABLE)
            .delete()
            .eq("job_id", job_id)
            .eq("freelancer_id", freelancer_id)
            .eq("application_status", _db_value(expected))
            .execute()
        )
        return bool(result.data)

    def update_applicant_status(
        self,
        job_id: str,
        freelancer_id: str,
        expected: ApplicationStatus,
        new_status: ApplicationStatus,
    ) -> bool:
        result = (
            self.db.table(JOB_APPLICANTS_TABLE)
            .update({"application_status": _db_value(new_status)})
            .eq("job_id", job_id)
            .eq("freelancer_id", freelancer_id)
            .eq("application_status", _db_value(expected))
            .execute()
        )
        return bool(result.data)

    def save_transition(self, transition: JobStateTransition) -> str:
        self.db.table(JOB_TRANSITIONS_TABLE).insert(transition.to_dict()).execute()
        return transition.id

    def get_transitions(self, job_id: str) -> List[JobStateTransition]:
        result = (
            self.db.table(JOB_TRANSITIONS_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .order("created_at")
            .execute()
        )
        return [JobStateTransition.from_dict(r) for r in result.data or []]


# =============================================================================
# Milestones
# =============================================================================


class SupabaseMilestoneStorage:
    """Milestone storage backed by the ``milestones`` table."""

    def __init__(self, db: Client):
        self.db = db

    def append_milestones(
        self,
        job_id: str,
        milestones: List[Milestone],
        max_total: Optional[int] = None,
    ) -> Optional[List[Milestone]]:
        # append_milestones locks the job row, so the total check and the
        # insert see the same set of milestones
        result = self.db.rpc(
            "append_milestones",
            {
                "p_job_id": job_id,
                "p_milestones": [m.to_dict() for m in milestones],
                "p_max_total": max_total,
            },
        ).execute()
        if not result.data:
            return None
        return [Milestone.from_dict(r) for r in result.data]

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        result = self.db.table(MILESTONES_TABLE).select("*").eq("id", milestone_id).execute()
        return Milestone.from_dict(result.data[0]) if result.data else None

    def list_milestones(self, job_id: str) -> List[Milestone]:
        result = (
            self.db.table(MILESTONES_TABLE)
            .select("*")
            .eq("job_id", job_id)
            .order("order")
            .execute()
        )
        return [Milestone.from_dict(r) for r in result.data or []]

    def update_milestone_where(
        self,
        milestone_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Milestone]:
        query = self.db.table(MILESTONES_TABLE).update(_db_row(updates)).eq("id", milestone_id)
        result = _match(query, expected).execute()
        return Milestone.from_dict(result.data[0]) if result.data else None

    def delete_milestone_where(self, milestone_id: str, expected_status: MilestoneStatus) -> bool:
        result = (
            self.db.table(MILESTONES_TABLE)
            .delete()
            .eq("id", milestone_id)
            .eq("status", _db_value(expected_status))
            .execute()
        )
        return bool(result.data)


# =============================================================================
# Ratings
# =============================================================================


class SupabaseRatingStorage:
    """Rating storage backed by the ``ratings`` table (unique job_id, direction)."""

    def __init__(self, db: Client):
        self.db = db

    def save_rating(self, rating: Rating) -> str:
        self.db.table(RATINGS_TABLE).insert(rating.to_dict()).execute()
        return rating.id

    def list_ratings(self, to_id: str, limit: int = 50) -> List[Rating]:
        result = (
            self.db.table(RATINGS_TABLE)
            .select("*")
            .eq("to_id", to_id)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return [Rating.from_dict(r) for r in result.data or []]


# =============================================================================
# Notifications
# =============================================================================


class SupabaseNotificationStorage:
    """Notification storage backed by the ``notifications`` table."""

    def __init__(self, db: Client):
        self.db = db

    def save_notification(self, notification: Notification) -> str:
        self.db.table(NOTIFICATIONS_TABLE).insert(notification.to_dict()).execute()
        return notification.id

    def get_notification(self, notification_id: str) -> Optional[Notification]:
        result = self.db.table(NOTIFICATIONS_TABLE).select("*").eq("id", notification_id).execute()
        return Notification.from_dict(result.data[0]) if result.data else None

    @staticmethod
    def _filter(query, recipient_id, read, archived, type=None):
        query = query.eq("recipient_id", recipient_id)
        if read is not None:
            query = query.eq("read", read)
        if archived is not None:
            query = query.eq("archived", archived)
        if type:
            query = query.eq("type", _db_value(type))
        return query

    def list_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
        type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Notification]:
        query = self._filter(
            self.db.table(NOTIFICATIONS_TABLE).select("*"), recipient_id, read, archived, type
        )
        result = query.order("created_at", desc=True).range(offset, offset + limit - 1).execute()
        return [Notification.from_dict(r) for r in result.data or []]

    def count_notifications(
        self,
        recipient_id: str,
        read: Optional[bool] = None,
        archived: Optional[bool] = False,
    ) -> int:
        query = self._filter(
            self.db.table(NOTIFICATIONS_TABLE).select("id", count="exact"), recipient_id, read, archived
        )
        return query.limit(1).execute().count or 0

    def update_notifications(
        self,
        recipient_id: str,
        updates: Dict[str, Any],
        ids: Optional[List[str]] = None,
        read: Optional[bool] = None,
    ) -> int:
        query = (
            self.db.table(NOTIFICATIONS_TABLE)
            .update(_db_row(updates))
            .eq("recipient_id", recipient_id)
        )
        if ids is not None:
            query = query.in_("id", ids)
        if read is not None:
            query = query.eq("read", read)
        return len(query.execute().data or [])

    def delete_notifications(self, recipient_id: str, ids: List[str]) -> int:
        result = (
            self.db.table(NOTIFICATIONS_TABLE)
            .delete()
            .eq("recipient_id", recipient_id)
            .in_("id", ids)
            .execute()
        )
        return len(result.data or [])


# =============================================================================
# Marketplace dependency
# =============================================================================


def build_marketplace(settings: Settings) -> Marketplace:
    """Marketplace over the configured storage backend."""
    global _memory_marketplace
    config = settings.marketplace_config()
    if settings.storage_backend == "memory":
        if _memory_marketplace is None:
            logger.info("Using in-memory storage backend")
            _memory_marketplace = Marketplace.in_memory(config)
        return _memory_marketplace

    db = get_supabase_client(settings)
    return Marketplace(
        job_storage=SupabaseJobStorage(db),
        milestone_storage=SupabaseMilestoneStorage(db),
        rating_storage=SupabaseRatingStorage(db),
        notification_storage=SupabaseNotificationStorage(db),
        config=config,
    )


def get_marketplace(settings: Annotated[Settings, Depends(get_settings)]) -> Marketplace:
    """FastAPI dependency for the marketplace services."""
    return build_marketplace(settings)


MarketplaceDep = Annotated[Marketplace, Depends(get_marketplace)]
