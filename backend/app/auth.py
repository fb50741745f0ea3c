"""Authentication utilities for the FreelanceHub backend.

Accounts live in a separate identity service; this API only verifies the
access tokens it issues. A token carries the user id in ``sub`` and the
account role in ``role``.
"""

from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from freelancehub.actors import Actor, Role

from .config import Settings, get_settings

# Cookie name for httpOnly auth
AUTH_COOKIE_NAME = "freelancehub_auth"

# Bearer token scheme
# Make bearer optional to allow cookie fallback
security = HTTPBearer(auto_error=False)


def create_access_token(
    user_id: str,
    settings: Settings,
    role: Role | str = Role.FREELANCER,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for a user."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": user_id,
        "role": Role(role).value,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthContext:
    """Context from JWT token containing user_id and role."""

    def __init__(self, user_id: str, role: Role | str = Role.FREELANCER):
        self.user_id = user_id
        self.role = Role(role)

    @property
    def actor(self) -> Actor:
        """Identity handed to the core services."""
        return Actor(user_id=self.user_id, role=self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    request: Request,
) -> AuthContext:
    """Get the current authenticated user context from the token or cookie."""
    # Try Authorization header first, then fall back to cookie
    token = None
    if credentials:
        token = credentials.credentials
    else:
        token = request.cookies.get(AUTH_COOKIE_NAME)

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated - provide Authorization header or auth cookie",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_token(token, settings)
    user_id = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        role = Role(payload.get("role", Role.FREELANCER.value))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token role",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthContext(user_id=user_id, role=role)


# Type alias for dependency injection
CurrentUser = Annotated[AuthContext, Depends(get_current_user)]


def require_role(*roles: Role):
    """Dependency factory rejecting callers without one of ``roles``.

    Admins pass every role check.
    """

    async def _check(auth: CurrentUser) -> AuthContext:
        if not auth.actor.has_role(*roles):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not Authorized",
            )
        return auth

    return _check


EmployerUser = Annotated[AuthContext, Depends(require_role(Role.EMPLOYER))]
FreelancerUser = Annotated[AuthContext, Depends(require_role(Role.FREELANCER))]
