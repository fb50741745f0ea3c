"""Top-level entry point wiring the marketplace services together."""

from typing import Optional

from freelancehub.actors import Actor, Role
from freelancehub.commerce.jobs.service import JobService
from freelancehub.commerce.jobs.storage import InMemoryJobStorage, JobStorage
from freelancehub.commerce.milestones.service import MilestoneService
from freelancehub.commerce.milestones.storage import InMemoryMilestoneStorage, MilestoneStorage
from freelancehub.commerce.ratings.service import RatingService
from freelancehub.commerce.ratings.storage import InMemoryRatingStorage, RatingStorage
from freelancehub.config import MarketplaceConfig
from freelancehub.notifications.service import NotificationService
from freelancehub.notifications.storage import InMemoryNotificationStorage, NotificationStorage

__all__ = ["Marketplace", "Actor", "Role"]


class Marketplace:
    """Main interface for marketplace operations.

    Holds one instance of each service over a shared set of storage
    backends. The API builds one per process; tests usually start from
    :meth:`in_memory`.

    Examples:
        m = Marketplace.in_memory()
        job = m.jobs.create_job(Actor("emp-1", Role.EMPLOYER), "Logo", "Design a logo", 50)
    """

    def __init__(
        self,
        job_storage: JobStorage,
        milestone_storage: MilestoneStorage,
        rating_storage: RatingStorage,
        notification_storage: NotificationStorage,
        config: Optional[MarketplaceConfig] = None,
    ):
        self.config = config or MarketplaceConfig()
        self.notifications = NotificationService(notification_storage, self.config)
        self.jobs = JobService(job_storage, milestone_storage, self.notifications, self.config)
        self.milestones = MilestoneService(milestone_storage, self.jobs, self.notifications, self.config)
        self.ratings = RatingService(rating_storage, self.jobs, self.notifications, self.config)

    @classmethod
    def in_memory(cls, config: Optional[MarketplaceConfig] = None) -> "Marketplace":
        """Marketplace backed entirely by in-process storage."""
        return cls(
            job_storage=InMemoryJobStorage(),
            milestone_storage=InMemoryMilestoneStorage(),
            rating_storage=InMemoryRatingStorage(),
            notification_storage=InMemoryNotificationStorage(),
            config=config,
        )
