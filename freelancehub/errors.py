"""Exception hierarchy for marketplace operations.

Each error carries the HTTP status the API layer reports it with, so the
routes never have to translate individual failures.
"""


class MarketplaceError(Exception):
    """Base exception for marketplace operations."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MarketplaceError):
    """Malformed or out-of-range input."""

    status_code = 400


class ForbiddenError(MarketplaceError):
    """Caller has the wrong role or does not own the resource."""

    status_code = 403


class NotFoundError(MarketplaceError):
    """Referenced entity does not exist."""

    status_code = 404


class ConflictError(MarketplaceError):
    """Illegal state transition or uniqueness violation."""

    status_code = 409


class JobNotFoundError(NotFoundError):
    """Job does not exist."""

    def __init__(self, job_id: str):
        super().__init__("Job not found")
        self.job_id = job_id


class ApplicantNotFoundError(NotFoundError):
    """Freelancer has not applied to the job."""


class MilestoneNotFoundError(NotFoundError):
    """Milestone does not exist on the job."""

    def __init__(self, milestone_id: str):
        super().__init__("Milestone not found")
        self.milestone_id = milestone_id


class NotificationNotFoundError(NotFoundError):
    """Notification does not exist."""

    def __init__(self, notification_id: str):
        super().__init__("Notification not found")
        self.notification_id = notification_id


class DuplicateApplicationError(ConflictError):
    """Freelancer already applied to this job."""


class InvalidTransitionError(ConflictError):
    """Requested status change is not allowed from the current status."""


class AlreadyRatedError(ConflictError):
    """Rating gate for this job and direction is already closed."""

    def __init__(self):
        super().__init__("Already Rated")
