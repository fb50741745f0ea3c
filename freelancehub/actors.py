"""Request-scoped caller identity."""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Account role carried in the access token."""

    EMPLOYER = "employer"
    FREELANCER = "freelancer"
    ADMIN = "admin"


@dataclass(frozen=True)
class Actor:
    """The authenticated caller of a marketplace operation."""

    user_id: str
    role: Role = Role.FREELANCER

    def __post_init__(self):
        if not self.user_id:
            raise ValueError("user_id is required")
        # Accept plain strings from token claims
        object.__setattr__(self, "role", Role(self.role))

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def has_role(self, *roles: Role) -> bool:
        """Admins pass every role check."""
        return self.is_admin or self.role in roles
