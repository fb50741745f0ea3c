"""
Rating data models.

A rating is left once per job and direction after the job completes.
Ratings are immutable; the ``is_rated_by_*`` flags on the job are the gate.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from freelancehub.utils import iso, new_id, parse_datetime, utc_now

MIN_RATING = 1
MAX_RATING = 5


class RatingDirection(str, Enum):
    """Who rated whom."""

    EMPLOYER_TO_FREELANCER = "employer_to_freelancer"
    FREELANCER_TO_EMPLOYER = "freelancer_to_employer"

    @property
    def gate_field(self) -> str:
        """Job flag that closes once this direction has been rated."""
        if self is RatingDirection.EMPLOYER_TO_FREELANCER:
            return "is_rated_by_employer"
        return "is_rated_by_freelancer"


@dataclass
class Rating:
    """A 1-5 star rating with optional review text."""

    job_id: str
    from_id: str
    to_id: str
    direction: str
    rating: int
    review: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        raw = self.direction.value if isinstance(self.direction, Enum) else self.direction
        try:
            self.direction = RatingDirection(raw).value
        except ValueError:
            raise ValueError(f"Invalid direction: {raw}") from None
        if isinstance(self.rating, bool) or not isinstance(self.rating, int):
            raise ValueError("Rating must be a whole number")
        if not MIN_RATING <= self.rating <= MAX_RATING:
            raise ValueError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "from_id": self.from_id,
            "to_id": self.to_id,
            "direction": self.direction,
            "rating": self.rating,
            "review": self.review,
            "created_at": iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rating":
        return cls(
            id=data["id"],
            job_id=data["job_id"],
            from_id=data["from_id"],
            to_id=data["to_id"],
            direction=data["direction"],
            rating=int(data["rating"]),
            review=data.get("review"),
            created_at=parse_datetime(data.get("created_at")) or utc_now(),
        )
