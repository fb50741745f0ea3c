"""Ratings subsystem.

Models:
- Rating: One party's rating of the other after a job completes
- RatingDirection: employer_to_freelancer or freelancer_to_employer

Service:
- RatingService: rate_freelancer, rate_employer, averages
"""

from freelancehub.commerce.ratings.models import Rating, RatingDirection
from freelancehub.commerce.ratings.service import RatingService, RatingSummary
from freelancehub.commerce.ratings.storage import InMemoryRatingStorage, RatingStorage

__all__ = [
    "Rating",
    "RatingDirection",
    "RatingService",
    "RatingSummary",
    "RatingStorage",
    "InMemoryRatingStorage",
]
