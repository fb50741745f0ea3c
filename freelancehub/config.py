"""Marketplace policy configuration."""

from dataclasses import dataclass
from decimal import Decimal


@dataclass
class MarketplaceConfig:
    """Tunable rules for the job lifecycle.

    Attributes:
        min_job_budget: Smallest budget a job may be posted with.
        max_title_length: Upper bound on job and milestone titles.
        max_review_length: Upper bound on rating review text.
        jobs_page_size: Page size for the public job listing.
        notification_list_limit: Max notifications returned per listing.
        reject_other_applicants_on_select: When a freelancer is selected,
            explicitly reject every other pending applicant (True) or leave
            them pending (False).
        enforce_milestone_total: Refuse milestone sets whose percentages
            would add up to more than 100.
    """

    min_job_budget: Decimal = Decimal("5")
    max_title_length: int = 200
    max_review_length: int = 1000
    jobs_page_size: int = 10
    notification_list_limit: int = 50
    reject_other_applicants_on_select: bool = True
    enforce_milestone_total: bool = True

    def __post_init__(self):
        self.min_job_budget = Decimal(str(self.min_job_budget))
        if self.min_job_budget < 0:
            raise ValueError("min_job_budget cannot be negative")
        if self.jobs_page_size < 1:
            raise ValueError("jobs_page_size must be at least 1")
