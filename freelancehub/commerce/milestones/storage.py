"""Milestone storage layer."""

import copy
import threading
from typing import Any, Dict, List, Optional, Protocol

from freelancehub.commerce.milestones.models import Milestone, MilestoneStatus
from freelancehub.utils import utc_now


class MilestoneStorage(Protocol):
    """Protocol for milestone persistence backends."""

    def append_milestones(
        self,
        job_id: str,
        milestones: List[Milestone],
        max_total: Optional[int] = None,
    ) -> Optional[List[Milestone]]:
        """Insert milestones after the job's existing ones in one step.

        Each milestone's ``order`` is relative to the batch and gets offset by
        the current highest order. Returns the stored milestones, or None
        without inserting anything if the job's percentage total would exceed
        ``max_total``.
        """
        ...

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        ...

    def list_milestones(self, job_id: str) -> List[Milestone]:
        """All milestones of a job ordered by ``order``."""
        ...

    def update_milestone_where(
        self,
        milestone_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Milestone]:
        """Conditional update keyed by id plus expected field values.

        Returns the updated milestone, or None if nothing matched.
        """
        ...

    def delete_milestone_where(self, milestone_id: str, expected_status: MilestoneStatus) -> bool:
        """Delete only if the milestone is still in ``expected_status``."""
        ...


class InMemoryMilestoneStorage:
    """In-memory milestone storage for testing and local development."""

    def __init__(self):
        self._milestones: dict[str, Milestone] = {}
        self._lock = threading.Lock()

    def append_milestones(
        self,
        job_id: str,
        milestones: List[Milestone],
        max_total: Optional[int] = None,
    ) -> Optional[List[Milestone]]:
        with self._lock:
            existing = [m for m in self._milestones.values() if m.job_id == job_id]
            total = sum(m.percentage for m in existing) + sum(m.percentage for m in milestones)
            if max_total is not None and total > max_total:
                return None
            start = max((m.order for m in existing), default=0)
            stored = []
            for m in milestones:
                m = copy.deepcopy(m)
                m.order += start
                self._milestones[m.id] = m
                stored.append(copy.deepcopy(m))
            return stored

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        with self._lock:
            found = self._milestones.get(milestone_id)
            return copy.deepcopy(found) if found else None

    def list_milestones(self, job_id: str) -> List[Milestone]:
        with self._lock:
            items = [m for m in self._milestones.values() if m.job_id == job_id]
            return copy.deepcopy(sorted(items, key=lambda m: m.order))

    def update_milestone_where(
        self,
        milestone_id: str,
        expected: Dict[str, Any],
        updates: Dict[str, Any],
    ) -> Optional[Milestone]:
        with self._lock:
            milestone = self._milestones.get(milestone_id)
            if milestone is None:
                return None
            for key, want in expected.items():
                want = want.value if hasattr(want, "value") else want
                if getattr(milestone, key) != want:
                    return None
            for key, value in updates.items():
                setattr(milestone, key, value.value if hasattr(value, "value") else value)
            milestone.updated_at = utc_now()
            return copy.deepcopy(milestone)

    def delete_milestone_where(self, milestone_id: str, expected_status: MilestoneStatus) -> bool:
        with self._lock:
            milestone = self._milestones.get(milestone_id)
            if milestone is None or milestone.status != MilestoneStatus(expected_status).value:
                return False
            del self._milestones[milestone_id]
            return True
