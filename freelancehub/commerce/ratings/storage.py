"""Rating storage layer."""

import copy
import threading
from typing import List, Protocol

from freelancehub.commerce.ratings.models import Rating


class RatingStorage(Protocol):
    """Protocol for rating persistence backends."""

    def save_rating(self, rating: Rating) -> str:
        """Insert a rating. Returns its ID."""
        ...

    def list_ratings(self, to_id: str, limit: int = 50) -> List[Rating]:
        """Ratings received by a user, newest first."""
        ...


class InMemoryRatingStorage:
    """In-memory rating storage for testing and local development."""

    def __init__(self):
        self._ratings: dict[tuple, Rating] = {}
        self._lock = threading.Lock()

    def save_rating(self, rating: Rating) -> str:
        with self._lock:
            key = (rating.job_id, rating.direction)
            if key in self._ratings:
                raise ValueError(f"Rating already exists for job {rating.job_id} ({rating.direction})")
            self._ratings[key] = copy.deepcopy(rating)
        return rating.id

    def list_ratings(self, to_id: str, limit: int = 50) -> List[Rating]:
        with self._lock:
            items = [r for r in self._ratings.values() if r.to_id == to_id]
            items.sort(key=lambda r: r.created_at, reverse=True)
            return copy.deepcopy(items[:limit])
